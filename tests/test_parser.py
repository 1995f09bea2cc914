"""Schema parsing for DATA, KV and ENUM sheets."""

from __future__ import annotations

import pytest

from gable.core.errors import DataTypeError, DuplicateKeyError, LayoutError
from gable.services.compiler import (
    BaseType,
    EnumTable,
    LinkTarget,
    SheetKind,
    parse_field_type,
    parse_grid,
    parse_link,
    parser_for,
)


def test_player_schema_reads_header_rows(player_grid) -> None:
    schema = parse_grid(player_grid)

    assert schema.name == "Player"
    assert schema.kind is SheetKind.DATA
    assert schema.field_names == ("id", "name", "type", "server_note")
    assert schema.key_fields == ("id",)
    assert schema.field("type").field_type.enum_name == "EPlayerType"
    assert schema.field("server_note").platforms == frozenset({"server"})
    assert schema.field("id").description == "编号"
    assert [item.index for item in schema.fields] == [1, 2, 3, 4]
    assert schema.dependencies() == ("EPlayerType",)


def test_first_field_is_key_when_none_marked(make_data_grid) -> None:
    grid = make_data_grid("Item", ["id", "name"], ["int", "string"], ["1", "sword"])

    schema = parse_grid(grid)

    assert schema.key_fields == ("id",)
    assert schema.field("id").is_key


def test_two_marked_keys_form_composite_key(make_data_grid) -> None:
    grid = make_data_grid(
        "Reward", ["*stage", "*slot", "item"], ["int", "int", "string"], ["1", "1", "gold"]
    )

    schema = parse_grid(grid)

    assert schema.key_fields == ("stage", "slot")
    assert not schema.field("item").is_key


def test_more_than_two_keys_is_rejected(make_data_grid) -> None:
    grid = make_data_grid("Too", ["*a", "*b", "*c"], ["int", "int", "int"])

    with pytest.raises(LayoutError) as exc_info:
        parse_grid(grid)

    assert exc_info.value.sheet == "Too"
    assert exc_info.value.column == 3


def test_list_key_is_rejected(make_data_grid) -> None:
    grid = make_data_grid("Bad", ["*ids", "name"], ["int[]", "string"])

    with pytest.raises(LayoutError) as exc_info:
        parse_grid(grid)

    assert exc_info.value.row == 3
    assert exc_info.value.column == 1


def test_unknown_type_reports_type_cell(make_data_grid) -> None:
    grid = make_data_grid("Bad", ["id", "speed"], ["int", "double"])

    with pytest.raises(DataTypeError) as exc_info:
        parse_grid(grid)

    diagnostic = exc_info.value.to_diagnostic()
    assert diagnostic.kind == "TypeError"
    assert diagnostic.sheet == "Bad"
    assert diagnostic.cell_ref == "B3"


def test_duplicate_field_name_is_layout_error(make_data_grid) -> None:
    grid = make_data_grid("Bad", ["id", "name", "name"], ["int", "string", "string"])

    with pytest.raises(LayoutError, match="duplicate field name 'name'"):
        parse_grid(grid)


def test_type_without_field_name_is_layout_error(make_data_grid) -> None:
    grid = make_data_grid("Bad", ["id", ""], ["int", "string"])

    with pytest.raises(LayoutError) as exc_info:
        parse_grid(grid)

    assert (exc_info.value.row, exc_info.value.column) == (2, 2)


def test_short_grid_is_layout_error(make_grid) -> None:
    grid = make_grid("Short", SheetKind.DATA, [["desc"], ["id"]])

    with pytest.raises(LayoutError):
        parse_grid(grid)


def test_invalid_table_name_is_layout_error(make_data_grid) -> None:
    grid = make_data_grid("Bad Name", ["id"], ["int"])

    with pytest.raises(LayoutError) as exc_info:
        parse_grid(grid)

    assert exc_info.value.sheet == "Bad Name"


def test_link_row_is_parsed(make_data_grid) -> None:
    grid = make_data_grid(
        "Drop", ["id", "item_id"], ["int", "int"], links=["", "Item.id"]
    )

    schema = parse_grid(grid)

    assert schema.field("item_id").link == LinkTarget("Item", "id")
    assert schema.dependencies() == ("Item",)


def test_link_on_float_field_is_rejected(make_data_grid) -> None:
    grid = make_data_grid(
        "Drop", ["id", "rate"], ["int", "float"], links=["", "Item.id"]
    )

    with pytest.raises(LayoutError) as exc_info:
        parse_grid(grid)

    assert exc_info.value.row == 5


def test_kv_schema_is_one_field_per_row(kv_grid) -> None:
    schema = parse_grid(kv_grid)

    assert schema.kind is SheetKind.KV
    assert schema.field_names == ("map_height", "max_level", "default_type")
    assert schema.field("map_height").position == 1
    assert schema.field("max_level").platforms == frozenset({"server"})
    assert schema.key_fields == ()


def test_enum_members_and_auto_increment(make_grid) -> None:
    grid = make_grid(
        "EColor",
        SheetKind.ENUM,
        [["field", "value", "desc"], ["Red", "", ""], ["Green", "5", ""], ["Blue", "", "蓝"]],
    )

    table = parse_grid(grid)

    assert isinstance(table, EnumTable)
    assert [(m.name, m.value) for m in table.members] == [("Red", 0), ("Green", 5), ("Blue", 6)]
    assert table.resolve("Blue") == 6
    assert table.resolve("5") == 5


def test_enum_duplicate_symbol(make_grid) -> None:
    grid = make_grid(
        "EColor", SheetKind.ENUM, [["field", "value"], ["Red", "1"], ["Red", "2"]]
    )

    with pytest.raises(DuplicateKeyError, match="row 2") as exc_info:
        parse_grid(grid)

    assert exc_info.value.row == 3


def test_enum_value_must_be_integer(make_grid) -> None:
    grid = make_grid("EColor", SheetKind.ENUM, [["field", "value"], ["Red", "one"]])

    with pytest.raises(DataTypeError):
        parse_grid(grid)


def test_unknown_kind_has_no_parser() -> None:
    with pytest.raises(LayoutError):
        parser_for("chart")


@pytest.mark.parametrize(
    ("text", "base", "is_list", "enum_name"),
    [
        ("int", BaseType.INT, False, None),
        ("INT64", BaseType.LONG, False, None),
        ("vector3[]", BaseType.VECTOR3, True, None),
        ("%", BaseType.PERCENTAGE, False, None),
        ("enumref(EPlayerType)", BaseType.ENUM, False, "EPlayerType"),
    ],
)
def test_parse_field_type(text, base, is_list, enum_name) -> None:
    parsed = parse_field_type(text)

    assert parsed.base is base
    assert parsed.is_list is is_list
    assert parsed.enum_name == enum_name


def test_parse_field_type_rejects_time_list() -> None:
    with pytest.raises(DataTypeError):
        parse_field_type("time[]")


def test_parse_link() -> None:
    assert parse_link("") is None
    assert parse_link(" Item . id ") == LinkTarget("Item", "id")
    with pytest.raises(LayoutError):
        parse_link("Item")
