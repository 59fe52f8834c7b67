"""Batch runs and aggregated statistics."""

from .batch import BatchResults, BatchRunner, DriverStatistics

__all__ = ["BatchResults", "BatchRunner", "DriverStatistics"]
