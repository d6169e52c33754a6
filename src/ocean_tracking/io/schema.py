# src/ocean_tracking/io/schema.py
from __future__ import annotations


TRACKING_NUMBER_COLUMN = "Tracking Number"
KIND_COLUMN = "Kind"

OUTPUT_SHIPMENT_COLUMNS = [
    "Carrier",
    "Service",
    "Status",
    "DataSource",
    "Reliability",
    "Sources",
    "TimelineEvents",
    "LatestEvent",
    "LatestLocation",
    "LatestEventTimestampUtc",
    "Vessel",
    "Origin",
    "Destination",
]
AUX_COLS = ["IsStale", "Warning", "ErrorCode", "Error"]

# original columns are kept first, in their original order
OUTPUT_SUFFIX_ORDER = OUTPUT_SHIPMENT_COLUMNS + AUX_COLS

REQUIRED_INPUT_COLUMNS = [TRACKING_NUMBER_COLUMN]

TEXT_COLUMNS = [TRACKING_NUMBER_COLUMN]

SHEET_ALL = "All Shipments"
SHEET_FAILED = "Failed"
SHEET_MARKER = "Marker"
