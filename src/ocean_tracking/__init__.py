# src/ocean_tracking/__init__.py
from .pipelines.aggregator import TrackingAggregator
from .pipelines.tracking_service import TrackingService
from .pipelines.workbook_processor import WorkbookProcessor

__all__ = [
    "TrackingAggregator",
    "TrackingService",
    "WorkbookProcessor",
]
