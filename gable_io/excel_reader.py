"""Excel input helpers."""

# Module responsibilities:
# - Read every worksheet of a workbook through pandas.read_excel (openpyxl engine).
# - Normalize cells to the text form the compiler expects and wrap them as SheetGrid values.

from __future__ import annotations

import math
from datetime import date, datetime, time
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from gable.services.compiler import SheetGrid, SheetKind

from .utils.log import get_logger

logger = get_logger("excel_reader")


def cell_text(value: object) -> str:
    """Render one cell value as the text a designer typed.

    Integral floats lose their ``.0`` (Excel stores 1001 as 1001.0), booleans
    become ``true``/``false`` and timestamps use ISO text.
    """

    if isinstance(value, np.generic):
        value = value.item()
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def read_sheet_grids(
    path: Path,
    kind: SheetKind | str = SheetKind.DATA,
    sheets: Optional[Iterable[str]] = None,
) -> List[SheetGrid]:
    """Load worksheets of ``path`` as sheet grids of the given kind.

    Args:
        path: Workbook to read.
        kind: Classification applied to every worksheet in the workbook.
        sheets: Optional worksheet names to keep; defaults to all of them.

    Returns:
        One grid per worksheet in workbook order, named after the worksheet.

    Raises:
        FileNotFoundError: When the workbook does not exist.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Source workbook not found: {path}")

    logger.info("Reading workbook %s", path)
    # Symbols such as None, NA or null are design data, not missing values.
    frames = pd.read_excel(
        path,
        sheet_name=None,
        header=None,
        dtype=object,
        engine="openpyxl",
        keep_default_na=False,
        na_filter=False,
    )
    wanted = set(sheets) if sheets is not None else None

    grids: List[SheetGrid] = []
    for sheet_name, frame in frames.items():
        if wanted is not None and sheet_name not in wanted:
            continue
        rows = [
            tuple(cell_text(value) for value in row)
            for row in frame.itertuples(index=False, name=None)
        ]
        grids.append(
            SheetGrid(
                name=str(sheet_name).strip(),
                kind=SheetKind(kind),
                rows=tuple(rows),
                source=f"{path.name}@{sheet_name}",
            )
        )
        logger.debug("Loaded sheet %s (%d rows)", sheet_name, len(rows))
    return grids


__all__ = ["cell_text", "read_sheet_grids"]
