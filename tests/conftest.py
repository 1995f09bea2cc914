from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gable.core.logger import reset_logger
from gable.services.compiler import SheetGrid, SheetKind

GridFactory = Callable[..., SheetGrid]

PLAYER_HEADER = [
    ["编号", "名字", "类型", "服务器备注"],
    ["*id", "name", "type", "server_note"],
    ["int", "string", "enum(EPlayerType)", "string"],
    ["", "", "", "server"],
    ["", "", "", ""],
]


def data_rows(header: Sequence[Sequence[str]], *rows: Sequence[str]) -> list[list[str]]:
    return [list(row) for row in header] + [list(row) for row in rows]


@pytest.fixture
def make_grid() -> GridFactory:
    """Build a SheetGrid from literal rows."""

    def _make(name: str, kind: SheetKind, rows: Sequence[Sequence[object]]) -> SheetGrid:
        return SheetGrid.from_rows(name, kind, rows, source=f"{name}.xlsx@{name}")

    return _make


@pytest.fixture
def make_data_grid(make_grid: GridFactory) -> GridFactory:
    """DATA grid from five header rows (desc/field/type/platform/link) plus data rows."""

    def _make(
        name: str,
        fields: Sequence[str],
        types: Sequence[str],
        *rows: Sequence[str],
        platforms: Sequence[str] | None = None,
        links: Sequence[str] | None = None,
        descs: Sequence[str] | None = None,
    ) -> SheetGrid:
        width = len(fields)
        header = [
            list(descs) if descs is not None else [f"{field} desc" for field in fields],
            list(fields),
            list(types),
            list(platforms) if platforms is not None else [""] * width,
            list(links) if links is not None else [""] * width,
        ]
        return make_grid(name, SheetKind.DATA, data_rows(header, *rows))

    return _make


@pytest.fixture
def enum_grid(make_grid: GridFactory) -> SheetGrid:
    return make_grid(
        "EPlayerType",
        SheetKind.ENUM,
        [
            ["field", "value", "desc"],
            ["None", "0", "无"],
            ["Normal", "1", "普通玩家"],
            ["Special", "2", "特殊玩家"],
        ],
    )


@pytest.fixture
def player_grid(make_grid: GridFactory) -> SheetGrid:
    return make_grid(
        "Player",
        SheetKind.DATA,
        data_rows(
            PLAYER_HEADER,
            ["1", "Alice", "Normal", "vip"],
            ["2", "Bob", "Special", ""],
        ),
    )


@pytest.fixture
def kv_grid(make_grid: GridFactory) -> SheetGrid:
    return make_grid(
        "Const",
        SheetKind.KV,
        [
            ["field", "type", "platform", "value", "desc"],
            ["map_height", "float", "", "12.5", "地图高度"],
            ["max_level", "int", "server", "60", "等级上限"],
            ["default_type", "enum(EPlayerType)", "", "Normal", ""],
        ],
    )


@pytest.fixture
def reset_logging() -> None:
    reset_logger()
    yield
    reset_logger()
