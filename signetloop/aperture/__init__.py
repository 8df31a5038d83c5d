"""Aperture reverse proxy: config rendering and container bootstrap."""

from .config import (
    ApertureConfig,
    load_aperture_config,
    render_aperture_config,
    write_aperture_config,
)

__all__ = [
    "ApertureConfig",
    "load_aperture_config",
    "render_aperture_config",
    "write_aperture_config",
]
