"""Environment lifecycle: start, setup, status, stop and logs."""

from .service import SignetEnvironment, is_affirmative

__all__ = ["SignetEnvironment", "is_affirmative"]
