"""
Ingestion pipeline package for the Order Service.
"""

from .ingestion import IngestionPipeline, ProcessingOutcome, error_reason

__all__ = ["IngestionPipeline", "ProcessingOutcome", "error_reason"]
