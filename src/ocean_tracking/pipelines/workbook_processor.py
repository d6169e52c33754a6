from __future__ import annotations

import datetime as dt
import warnings
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from openpyxl import load_workbook

from ocean_tracking.io.schema import (
    KIND_COLUMN,
    OUTPUT_SUFFIX_ORDER,
    SHEET_ALL,
    SHEET_FAILED,
    SHEET_MARKER,
    TEXT_COLUMNS,
    TRACKING_NUMBER_COLUMN,
)
from ocean_tracking.models import ConsolidatedShipment, TrackingError
from ocean_tracking.pipelines.tracking_service import TrackingOutcome, TrackingService


def _is_blank(val: Any) -> bool:
    """True if value is None/NaN/empty/"nan"/"none" (case-insensitive)."""
    if val is None:
        return True
    if isinstance(val, float) and np.isnan(val):
        return True
    s = str(val).strip()
    return s == "" or s.lower() in {"nan", "none"}


def clean_tracking_number(v: Any) -> str:
    """Tracking number as text; undoes Excel's float/scientific rendering of digit-only numbers."""
    if _is_blank(v):
        return ""
    if isinstance(v, (int, np.integer)):
        return str(int(v))
    if isinstance(v, (float, np.floating)):
        return str(int(v)) if float(v).is_integer() else str(v)
    s = str(v).strip()
    if s.endswith(".0") and s[:-2].isdigit():
        return s[:-2]
    return s


def _port_label(port) -> str:
    if port is None:
        return ""
    return f"{port.name} ({port.code})" if port.code else port.name


def shipment_columns(outcome: TrackingOutcome) -> dict[str, Any]:
    s: ConsolidatedShipment = outcome.shipment
    latest = s.latest_event
    return {
        "Carrier": s.carrier,
        "Service": s.service,
        "Status": s.status,
        "DataSource": s.data_source,
        "Reliability": s.reliability,
        "Sources": ", ".join(s.sources),
        "TimelineEvents": len(s.timeline),
        "LatestEvent": latest.status if latest else "",
        "LatestLocation": latest.location if latest else "",
        "LatestEventTimestampUtc": latest.timestamp.isoformat() if latest else "",
        "Vessel": s.vessel.name if s.vessel else "",
        "Origin": _port_label(s.route.origin) if s.route else "",
        "Destination": _port_label(s.route.destination) if s.route else "",
        "IsStale": int(outcome.is_stale),
        "Warning": outcome.warning or "",
        "ErrorCode": "",
        "Error": "",
    }


class WorkbookProcessor:
    """Tracks every row of an input workbook and writes a processed copy."""

    def __init__(self, logger, *, service: TrackingService, force_refresh: bool = False) -> None:
        self.logger = logger
        self.service = service
        self.force_refresh = force_refresh

    def process(self, input_path: Path, processed_path: Path) -> dict[str, Any]:
        input_path = Path(input_path)
        processed_path = Path(processed_path)

        if not input_path.exists():
            self.logger.error("Input file does not exist: %s", input_path)
            raise FileNotFoundError(input_path)

        df_in = self._read_input(input_path)
        if TRACKING_NUMBER_COLUMN not in df_in.columns:
            raise ValueError(f"input workbook has no '{TRACKING_NUMBER_COLUMN}' column")

        df_out = self.track_frame(df_in)
        failed = df_out[df_out["ErrorCode"] != ""]

        now_utc = dt.datetime.now(dt.timezone.utc).isoformat()
        marker = pd.DataFrame([{
            "_ocean_tracking_marker": "ok",
            "input_name": input_path.name,
            "output_name": processed_path.name,
            "timestamp_utc": now_utc,
            "providers": ", ".join(sorted(self.service.aggregator.adapters)),
            "rows": len(df_out),
            "tracked": int((df_out["DataSource"] != "").sum()),
            "failed": len(failed),
        }])

        processed_path.parent.mkdir(parents=True, exist_ok=True)
        self._write_workbook(processed_path, df_out, failed, marker)

        self.logger.info("Wrote processed workbook → %s", processed_path)
        return {
            "output_path": str(processed_path),
            "timestamp_utc": now_utc,
            "rows": len(df_out),
            "failed": len(failed),
            "output_cols": list(df_out.columns),
        }

    def _read_input(self, input_path: Path) -> pd.DataFrame:
        # read everything as text so long digit-only numbers survive
        df_in = pd.read_excel(input_path, sheet_name=0, engine="openpyxl", dtype=object)
        self.logger.debug(
            "Opened input workbook: %s (rows=%d, cols=%d)",
            input_path.name, len(df_in), len(df_in.columns),
        )
        return df_in

    def track_frame(self, df_in: pd.DataFrame) -> pd.DataFrame:
        """Original columns first, then one block of tracking columns per row."""
        rows: list[dict[str, Any]] = []
        for idx, row in df_in.iterrows():
            tn = clean_tracking_number(row.get(TRACKING_NUMBER_COLUMN))
            kind = row.get(KIND_COLUMN) if KIND_COLUMN in df_in.columns else None
            kind = None if _is_blank(kind) else str(kind).strip()

            if not tn:
                rows.append({c: "" for c in OUTPUT_SUFFIX_ORDER})
                continue

            try:
                outcome = self.service.track(tn, kind, force_refresh=self.force_refresh)
                rows.append(shipment_columns(outcome))
                self.logger.debug("Row %s: %s -> %s", idx, tn, outcome.shipment.status)
            except TrackingError as e:
                self.logger.warning("Row %s: %s failed: %s", idx, tn, e.message)
                cols = {c: "" for c in OUTPUT_SUFFIX_ORDER}
                cols.update({"ErrorCode": e.code, "Error": e.message})
                rows.append(cols)

        added = pd.DataFrame(rows, index=df_in.index, columns=OUTPUT_SUFFIX_ORDER)
        base = df_in.drop(columns=[c for c in OUTPUT_SUFFIX_ORDER if c in df_in.columns])
        out = pd.concat([base, added], axis=1)
        out[TRACKING_NUMBER_COLUMN] = out[TRACKING_NUMBER_COLUMN].map(clean_tracking_number)
        return out

    def _write_workbook(self, processed_path: Path, df_out: pd.DataFrame, failed: pd.DataFrame, marker: pd.DataFrame) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            with pd.ExcelWriter(processed_path, engine="openpyxl", mode="w") as xw:
                df_out.to_excel(xw, sheet_name=SHEET_ALL, index=False, na_rep="")
                failed.to_excel(xw, sheet_name=SHEET_FAILED, index=False, na_rep="")
                marker.to_excel(xw, sheet_name=SHEET_MARKER, index=False)

        # force Excel TEXT type for tracking numbers so Excel never re-floats them
        wb = load_workbook(processed_path)
        for sheet_name in (SHEET_ALL, SHEET_FAILED):
            ws = wb[sheet_name]
            header = [c.value for c in ws[1]]
            for col_name in TEXT_COLUMNS:
                if col_name not in header:
                    continue
                col_idx = header.index(col_name) + 1
                for r in range(2, ws.max_row + 1):
                    c = ws.cell(row=r, column=col_idx)
                    c.value = clean_tracking_number(c.value)
                    c.number_format = "@"
        wb.save(processed_path)
