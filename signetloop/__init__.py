"""signet-loop: local Loop/Aperture development environment on Bitcoin signet."""

__version__ = "0.1.0"
