"""Abstract interfaces for external collaborators."""

from .transport import Transport

__all__ = ["Transport"]
