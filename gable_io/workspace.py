"""Workspace discovery: find workbooks and classify their sheets by folder."""

# Module responsibilities:
# - Walk a workspace for *.xlsx files, skipping tool folders and Excel lock files.
# - Classify each workbook as ENUM / KV / DATA from its enclosing folder and load its grids.

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List

from gable.services.compiler import SheetGrid, SheetKind
from gable.services.compiler.layout import ENUM_FOLDER, KV_FOLDER

from .excel_reader import read_sheet_grids
from .utils.log import get_logger

logger = get_logger("workspace")

TEMP_DIR = "__Temps"
DATA_DIR = "__Datas"
IGNORED_DIRS = frozenset({".git", ".vscode", "_log", TEMP_DIR, DATA_DIR})
EXCEL_SUFFIXES = (".xlsx", ".xlsm")
LOCK_PREFIX = "~$"


@dataclass(frozen=True, slots=True)
class WorkbookEntry:
    path: Path
    kind: SheetKind


def classify(path: Path, root: Path) -> SheetKind:
    """Kind of a workbook, decided by the first reserved folder on its relative path."""

    try:
        parts = path.relative_to(root).parts[:-1]
    except ValueError:
        parts = path.parts[:-1]
    for part in parts:
        lowered = part.lower()
        if lowered == ENUM_FOLDER:
            return SheetKind.ENUM
        if lowered == KV_FOLDER:
            return SheetKind.KV
    return SheetKind.DATA


def iter_workbooks(root: Path) -> Iterator[WorkbookEntry]:
    """Yield workbooks under ``root`` in a stable (sorted) order."""

    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Workspace not found: {root}")
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in EXCEL_SUFFIXES:
            continue
        if path.name.startswith(LOCK_PREFIX):
            continue
        if any(part in IGNORED_DIRS for part in path.relative_to(root).parts[:-1]):
            continue
        yield WorkbookEntry(path=path, kind=classify(path, root))


def discover_sheets(root: Path) -> List[SheetGrid]:
    """Load every worksheet in the workspace as a classified grid."""

    grids: List[SheetGrid] = []
    for entry in iter_workbooks(root):
        loaded = read_sheet_grids(entry.path, entry.kind)
        logger.info("%s: %d sheet(s) as %s", entry.path.name, len(loaded), entry.kind.value)
        grids.extend(loaded)
    return grids


__all__ = [
    "DATA_DIR",
    "IGNORED_DIRS",
    "TEMP_DIR",
    "WorkbookEntry",
    "classify",
    "discover_sheets",
    "iter_workbooks",
]
