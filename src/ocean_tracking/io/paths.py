from __future__ import annotations

from pathlib import Path
from typing import Tuple

PROCESSED_SUFFIX = "_processed.xlsx"


def derive_output_paths(input_file: Path) -> Tuple[Path, Path]:
    """
    (processed_xlsx_path, log_path) next to the input workbook.

    Raises FileNotFoundError if input_file doesn't exist, and ValueError when
    it is not an .xlsx file.
    """
    p = Path(input_file)
    if not p.exists():
        raise FileNotFoundError(p)
    if p.suffix.lower() != ".xlsx":
        raise ValueError(f"expected an .xlsx workbook, got {p.name}")

    processed = p.with_name(f"{p.stem}{PROCESSED_SUFFIX}")
    return processed, p.with_suffix(".log")
