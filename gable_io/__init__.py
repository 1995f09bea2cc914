"""`gable_io` exports the workspace and artifact IO helpers used by the CLI."""

# Module responsibilities:
# - Re-export the workbook reader, workspace discovery and artifact writers.

from __future__ import annotations

from .excel_reader import cell_text, read_sheet_grids
from .workspace import IGNORED_DIRS, classify, discover_sheets, iter_workbooks
from .writer import ArtifactWriter, FileArtifactWriter, MemoryArtifactWriter

__all__ = [
    "ArtifactWriter",
    "FileArtifactWriter",
    "IGNORED_DIRS",
    "MemoryArtifactWriter",
    "cell_text",
    "classify",
    "discover_sheets",
    "iter_workbooks",
    "read_sheet_grids",
]

__version__ = "0.1.0"
