"""Output export."""

from .export import Exporter

__all__ = ["Exporter"]
