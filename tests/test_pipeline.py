"""End-to-end compile and export runs through the build orchestrator."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gable.config import BuildSettings, BuildTarget
from gable.core.pipeline import (
    BuildOrchestrator,
    CancelToken,
    RunState,
    TargetStage,
)
from gable.services.compiler import SheetKind
from gable_io.writer import MemoryArtifactWriter


def _settings(tmp_path: Path, *targets: BuildTarget) -> BuildSettings:
    if not targets:
        targets = (
            BuildTarget(name="client", language="csharp", keyword="client", output_path=Path("out/client")),
            BuildTarget(name="server", language="go", keyword="server", output_path=Path("out/server")),
        )
    return BuildSettings(workspace=tmp_path, max_workers=2, targets=list(targets))


@pytest.fixture
def writer() -> MemoryArtifactWriter:
    return MemoryArtifactWriter()


@pytest.fixture
def orchestrator(writer: MemoryArtifactWriter) -> BuildOrchestrator:
    return BuildOrchestrator(writer=writer)


def _kinds(report) -> list[str]:
    return [diagnostic.kind for diagnostic in report.diagnostics]


def test_player_scenario_exports_per_platform(
    tmp_path: Path, orchestrator, writer, player_grid, enum_grid, kv_grid
) -> None:
    report = orchestrator.run([player_grid, enum_grid, kv_grid], _settings(tmp_path))

    assert report.state is RunState.DONE, report.diagnostics
    assert report.ok
    assert sorted(report.tables) == ["Const", "EPlayerType", "Player"]
    assert [record["type"] for record in report.table("Player").records] == [1, 2]

    client_players = json.loads(writer.text(tmp_path / "out/client/Player.json"))
    server_players = json.loads(writer.text(tmp_path / "out/server/Player.json"))
    assert client_players[0] == {"id": 1, "name": "Alice", "type": 1}
    assert server_players[0]["server_note"] == "vip"

    client_const = json.loads(writer.text(tmp_path / "out/client/Const.json"))
    assert client_const == {"map_height": 12.5, "default_type": 1}
    server_const = json.loads(writer.text(tmp_path / "out/server/Const.json"))
    assert server_const["max_level"] == 60

    # Enums are only emitted as generated code.
    assert len(report.artifacts) == 4
    assert all(result.ok for result in report.target_results)


def test_progress_callback_sees_every_phase(tmp_path: Path, orchestrator, player_grid, enum_grid) -> None:
    stages: list[str] = []

    orchestrator.run(
        [enum_grid, player_grid],
        _settings(tmp_path),
        progress_cb=lambda stage, detail: stages.append(stage),
    )

    assert stages == ["parsing_aux", "parsing_data", "exporting", "done"]


def test_code_generation_writes_tables_and_enums(tmp_path: Path, orchestrator, writer, player_grid, enum_grid) -> None:
    target = BuildTarget(
        name="client",
        language="cs",
        output_path=Path("out"),
        generate_code=True,
        code_path=Path("code"),
    )

    report = orchestrator.run([enum_grid, player_grid], _settings(tmp_path, target))

    assert report.ok, report.diagnostics
    assert tmp_path / "code/Player.cs" in writer.files
    assert tmp_path / "code/EPlayerType.cs" in writer.files
    assert tmp_path / "out/Player.json" in writer.files
    assert tmp_path / "out/EPlayerType.json" not in writer.files
    assert "public class Player" in writer.text(tmp_path / "code/Player.cs")


def test_protobuf_target_writes_bin(tmp_path: Path, orchestrator, writer, player_grid, enum_grid) -> None:
    target = BuildTarget(name="server", language="go", format="protobuf", output_path=Path("bin"))

    report = orchestrator.run([enum_grid, player_grid], _settings(tmp_path, target))

    assert report.ok
    assert writer.read(tmp_path / "bin/Player.bin")


def test_undefined_enum_is_unresolved(tmp_path: Path, orchestrator, player_grid) -> None:
    report = orchestrator.run([player_grid], _settings(tmp_path))

    assert report.state is RunState.FAILED
    assert _kinds(report) == ["UnresolvedReferenceError"]
    diagnostic = report.diagnostics[0]
    assert diagnostic.sheet == "Player"
    assert diagnostic.cell_ref == "C3"
    assert "Player" not in report.tables


def test_bad_enum_sheet_fails_dependents(tmp_path: Path, orchestrator, make_grid, player_grid) -> None:
    broken = make_grid("EPlayerType", SheetKind.ENUM, [["field", "value"], ["Normal", "x"]])

    report = orchestrator.run([broken, player_grid], _settings(tmp_path))

    assert report.state is RunState.FAILED
    assert _kinds(report) == ["TypeError", "UnresolvedReferenceError"]
    assert "depends on EPlayerType" in report.diagnostics[1].message


def test_links_are_checked_across_tables(tmp_path: Path, orchestrator, writer, make_data_grid) -> None:
    item = make_data_grid("Item", ["id", "name"], ["int", "string"], ["1", "sword"], ["2", "bow"])
    drop = make_data_grid(
        "Drop",
        ["id", "item_id"],
        ["int", "int"],
        ["10", "1"],
        ["11", "2"],
        links=["", "Item.id"],
    )

    report = orchestrator.run([drop, item], _settings(tmp_path))

    assert report.ok, report.diagnostics
    assert [record["item_id"] for record in report.table("Drop").records] == [1, 2]


def test_dangling_link_reports_cell(tmp_path: Path, orchestrator, make_data_grid) -> None:
    item = make_data_grid("Item", ["id"], ["int"], ["1"])
    drop = make_data_grid("Drop", ["id", "item_id"], ["int", "int"], ["10", "9"], links=["", "Item.id"])

    report = orchestrator.run([item, drop], _settings(tmp_path))

    assert _kinds(report) == ["UnresolvedReferenceError"]
    assert report.diagnostics[0].cell_ref == "B6"
    assert report.tables == ["Item"]


def test_link_to_failed_table_fails_dependent(tmp_path: Path, orchestrator, make_data_grid) -> None:
    bad = make_data_grid("Item", ["id"], ["int"], ["1"], ["1"])
    drop = make_data_grid("Drop", ["id", "item_id"], ["int", "int"], ["10", "1"], links=["", "Item.id"])

    report = orchestrator.run([bad, drop], _settings(tmp_path))

    assert _kinds(report) == ["DuplicateKeyError", "UnresolvedReferenceError"]
    assert report.diagnostics[1].sheet == "Drop"
    assert report.tables == []


def test_link_cycle_rejects_every_member(tmp_path: Path, orchestrator, make_data_grid) -> None:
    a = make_data_grid("A", ["id", "b_id"], ["int", "int"], ["1", "1"], links=["", "B.id"])
    b = make_data_grid("B", ["id", "a_id"], ["int", "int"], ["1", "1"], links=["", "A.id"])
    c = make_data_grid("C", ["id"], ["int"], ["1"])

    report = orchestrator.run([a, b, c], _settings(tmp_path))

    assert report.state is RunState.FAILED
    assert _kinds(report) == ["CyclicDependencyError", "CyclicDependencyError"]
    assert {diagnostic.sheet for diagnostic in report.diagnostics} == {"A", "B"}
    assert report.tables == ["C"]


def test_duplicate_table_name_keeps_first(tmp_path: Path, orchestrator, make_data_grid) -> None:
    first = make_data_grid("Item", ["id"], ["int"], ["1"])
    second = make_data_grid("Item", ["id"], ["int"], ["2"])

    report = orchestrator.run([first, second], _settings(tmp_path))

    assert _kinds(report) == ["DuplicateTableError"]
    assert [record["id"] for record in report.table("Item").records] == [1]


def test_bad_target_does_not_affect_others(tmp_path: Path, orchestrator, writer, player_grid, enum_grid) -> None:
    good = BuildTarget(name="good", language="python", output_path=Path("good"))
    bad_format = BuildTarget(name="toml", language="python", format="toml", output_path=Path("toml"))
    bad_language = BuildTarget(name="alien", language="klingon", output_path=Path("alien"))

    report = orchestrator.run(
        [enum_grid, player_grid], _settings(tmp_path, good, bad_format, bad_language)
    )

    assert report.state is RunState.FAILED
    assert tmp_path / "good/Player.json" in writer.files
    failures = [result for result in report.target_results if not result.ok]
    assert {result.target for result in failures} == {"toml", "alien"}
    assert all(result.stage is TargetStage.FILTERING for result in failures)
    assert {diagnostic.kind for diagnostic in report.diagnostics} == {"TargetConfigError"}
    assert all(diagnostic.target in {"toml", "alien"} for diagnostic in report.diagnostics)


def test_missing_code_path_is_target_error(tmp_path: Path, orchestrator, player_grid, enum_grid) -> None:
    target = BuildTarget(name="client", language="cs", output_path=Path("out"), generate_code=True)

    report = orchestrator.run([enum_grid, player_grid], _settings(tmp_path, target))

    assert {diagnostic.kind for diagnostic in report.diagnostics} == {"TargetConfigError"}


def test_disabled_targets_are_skipped(tmp_path: Path, orchestrator, writer, player_grid, enum_grid) -> None:
    on = BuildTarget(name="on", language="python", output_path=Path("on"))
    off = BuildTarget(name="off", language="python", enabled=False, output_path=Path("off"))

    report = orchestrator.run([enum_grid, player_grid], _settings(tmp_path, on, off))

    assert report.ok
    assert {result.target for result in report.target_results} == {"on"}
    assert not any(path.parts[-2] == "off" for path in writer.files)


def test_write_failure_is_export_error(tmp_path: Path, player_grid, enum_grid) -> None:
    class FailingWriter:
        def write(self, path: Path, data: bytes) -> None:
            raise PermissionError(f"read-only: {path}")

    report = BuildOrchestrator(writer=FailingWriter()).run(
        [enum_grid, player_grid], _settings(tmp_path)
    )

    assert report.state is RunState.FAILED
    assert {diagnostic.kind for diagnostic in report.diagnostics} == {"ExportError"}
    assert all(result.stage is TargetStage.SERIALIZING for result in report.target_results)


def test_cancel_before_start(tmp_path: Path, orchestrator, writer, player_grid, enum_grid) -> None:
    token = CancelToken()
    token.cancel()

    report = orchestrator.run([enum_grid, player_grid], _settings(tmp_path), cancel=token)

    assert report.state is RunState.CANCELLED
    assert not report.ok
    assert writer.files == {}


def test_cancel_during_export(tmp_path: Path, writer, player_grid, enum_grid) -> None:
    token = CancelToken()

    def on_progress(stage: str, detail: str) -> None:
        if stage == RunState.EXPORTING.value:
            token.cancel()

    report = BuildOrchestrator(writer=writer).run(
        [enum_grid, player_grid], _settings(tmp_path), cancel=token, progress_cb=on_progress
    )

    assert report.state is RunState.CANCELLED
    assert writer.files == {}


def test_protobuf_code_generation_ships_proto_schema(
    tmp_path: Path, orchestrator, writer, player_grid, enum_grid
) -> None:
    target = BuildTarget(
        name="server",
        language="go",
        format="protobuf",
        output_path=Path("bin"),
        generate_code=True,
        code_path=Path("code"),
    )

    report = orchestrator.run([enum_grid, player_grid], _settings(tmp_path, target))

    assert report.ok, report.diagnostics
    schema = writer.text(tmp_path / "code/Player.proto")
    assert "optional string name = 2;" in schema
    assert "message PlayerArray {" in schema
    assert tmp_path / "code/Player.go" in writer.files
    assert tmp_path / "code/EPlayerType.proto" not in writer.files


def test_table_named_like_vector_helper_keeps_siblings(
    tmp_path: Path, orchestrator, writer, make_data_grid
) -> None:
    vector = make_data_grid("Vector3", ["id", "pos"], ["int", "vector3"], ["1", "1,2,3"])
    other = make_data_grid("Other", ["id"], ["int"], ["7"])
    binary = BuildTarget(name="bin", language="go", format="protobuf", output_path=Path("bin"))
    text = BuildTarget(name="json", language="go", output_path=Path("json"))

    report = orchestrator.run([vector, other], _settings(tmp_path, binary, text))

    assert report.ok, report.diagnostics
    assert writer.read(tmp_path / "bin/Vector3.bin")
    assert json.loads(writer.text(tmp_path / "json/Other.json")) == [{"id": 7}]


def test_unexpected_error_fails_only_its_target(tmp_path: Path, player_grid, enum_grid) -> None:
    class FlakyWriter(MemoryArtifactWriter):
        def write(self, path: Path, data: bytes) -> None:
            if Path(path).suffix == ".bin":
                raise RuntimeError("device lost")
            super().write(path, data)

    writer = FlakyWriter()
    binary = BuildTarget(name="bin", language="go", format="protobuf", output_path=Path("bin"))
    text = BuildTarget(name="json", language="go", output_path=Path("json"))

    report = BuildOrchestrator(writer=writer).run(
        [enum_grid, player_grid], _settings(tmp_path, binary, text)
    )

    assert report.state is RunState.FAILED
    assert _kinds(report) == ["ExportError"]
    diagnostic = report.diagnostics[0]
    assert (diagnostic.sheet, diagnostic.target) == ("Player", "bin")
    assert "RuntimeError" in diagnostic.message
    assert tmp_path / "json/Player.json" in writer.files


def test_xml_target_writes_xml(tmp_path: Path, orchestrator, writer, player_grid, enum_grid) -> None:
    target = BuildTarget(name="client", language="cs", format="xml", keyword="client", output_path=Path("xml"))

    report = orchestrator.run([enum_grid, player_grid], _settings(tmp_path, target))

    assert report.ok, report.diagnostics
    text = writer.text(tmp_path / "xml/Player.xml")
    assert "<name>Alice</name>" in text
    assert "server_note" not in text
