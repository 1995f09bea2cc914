"""Build orchestration: compile ENUM, KV and DATA sheets, then export per target."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Sequence

from gable.config import BuildSettings, BuildTarget
from gable.core.errors import (
    CompileCancelled,
    CyclicDependencyError,
    Diagnostic,
    DuplicateTableError,
    ExportError,
    GableError,
    TargetConfigError,
    UnresolvedReferenceError,
)
from gable.services.compiler import (
    CompiledTable,
    EnumTable,
    RecordBuilder,
    SheetGrid,
    SheetKind,
    TableRegistry,
    TableSchema,
    TypeCoercer,
    parser_for,
    project_schema,
)
from gable.services.compiler.layout import DATA_LAYOUT
from gable.services.export import (
    CodeGenerator,
    ProtobufSerializer,
    extension_for,
    serializer_for,
)
from gable_io.writer import ArtifactWriter, FileArtifactWriter


ProgressCB = Callable[[str, str], None]


class RunState(str, Enum):
    IDLE = "idle"
    PARSING_AUX = "parsing_aux"
    PARSING_DATA = "parsing_data"
    EXPORTING = "exporting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TargetStage(str, Enum):
    FILTERING = "filtering"
    SERIALIZING = "serializing"
    CODE_GENERATING = "code_generating"


class CancelToken:
    """Cooperative cancellation flag shared with a running build."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CompileCancelled("compile run cancelled")


@dataclass(slots=True)
class TargetResult:
    table: str
    target: str
    ok: bool
    stage: TargetStage
    diagnostic: Diagnostic | None = None
    artifacts: list[Path] = field(default_factory=list)


@dataclass
class BuildReport:
    """Outcome of one compile run, returned to the CLI or GUI caller."""

    state: RunState = RunState.IDLE
    diagnostics: list[Diagnostic] = field(default_factory=list)
    tables: list[str] = field(default_factory=list)
    target_results: list[TargetResult] = field(default_factory=list)
    registry: TableRegistry | None = None

    @property
    def ok(self) -> bool:
        return self.state is RunState.DONE

    @property
    def artifacts(self) -> list[Path]:
        return [path for result in self.target_results for path in result.artifacts]

    def table(self, name: str) -> CompiledTable:
        if self.registry is None:
            raise KeyError(name)
        return self.registry.table(name)


@dataclass(slots=True)
class _DataUnit:
    grid: SheetGrid
    schema: TableSchema
    deps: tuple[str, ...]


class BuildOrchestrator:
    """Coordinates ENUM -> KV -> DATA compilation and per-target export."""

    def __init__(
        self,
        writer: ArtifactWriter | None = None,
        generator: CodeGenerator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.writer = writer or FileArtifactWriter()
        self.generator = generator or CodeGenerator()
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        grids: Iterable[SheetGrid],
        settings: BuildSettings,
        *,
        cancel: CancelToken | None = None,
        progress_cb: ProgressCB | None = None,
    ) -> BuildReport:
        def progress(stage: RunState, detail: str = "") -> None:
            if progress_cb:
                progress_cb(stage.value, detail)
            self.logger.info("%s - %s", stage.value, detail)

        token = cancel or CancelToken()
        registry = TableRegistry()
        report = BuildReport(registry=registry)
        failed: set[str] = set()

        accepted = self._claim_names(list(grids), registry, report, failed)
        enums = [grid for grid in accepted if grid.kind is SheetKind.ENUM]
        kvs = [grid for grid in accepted if grid.kind is SheetKind.KV]
        datas = [grid for grid in accepted if grid.kind is SheetKind.DATA]

        with ThreadPoolExecutor(
            max_workers=settings.max_workers, thread_name_prefix="gable"
        ) as pool:
            report.state = RunState.PARSING_AUX
            progress(RunState.PARSING_AUX, f"{len(enums)} enum(s), {len(kvs)} kv table(s)")
            # Enums first: KV values may reference enum symbols.
            for batch in (enums, kvs):
                outcomes = pool.map(lambda g: self._compile_aux(g, registry, token), batch)
                self._collect(batch, outcomes, report, failed)
            if token.cancelled:
                return self._finish(report, cancelled=True, progress=progress)

            report.state = RunState.PARSING_DATA
            progress(RunState.PARSING_DATA, f"{len(datas)} data sheet(s)")
            self._compile_data(datas, pool, registry, report, failed, token)
            if token.cancelled:
                return self._finish(report, cancelled=True, progress=progress)

            registry.freeze()
            report.tables = [grid.name for grid in accepted if grid.name in registry]

            report.state = RunState.EXPORTING
            targets = settings.enabled_targets()
            progress(RunState.EXPORTING, f"{len(report.tables)} table(s) x {len(targets)} target(s)")
            jobs = [
                (registry.get(name), target)
                for name in report.tables
                for target in targets
                if isinstance(registry.get(name), CompiledTable) or target.generate_code
            ]
            results = pool.map(lambda job: self._export(job[0], job[1], settings, token), jobs)
            for result in results:
                if result is None:
                    continue
                report.target_results.append(result)
                if result.diagnostic is not None:
                    report.diagnostics.append(result.diagnostic)

        return self._finish(report, cancelled=token.cancelled, progress=progress)

    # -- compile phase -----------------------------------------------------

    def _claim_names(
        self,
        grids: Sequence[SheetGrid],
        registry: TableRegistry,
        report: BuildReport,
        failed: set[str],
    ) -> list[SheetGrid]:
        accepted: list[SheetGrid] = []
        for grid in grids:
            try:
                registry.claim(grid.name)
            except DuplicateTableError as exc:
                if grid.source:
                    exc.message = f"{exc.message} ({grid.source})"
                report.diagnostics.append(exc.to_diagnostic())
                continue
            accepted.append(grid)
        return accepted

    def _compile_aux(
        self, grid: SheetGrid, registry: TableRegistry, token: CancelToken
    ) -> GableError | None:
        try:
            token.raise_if_cancelled()
            parsed = parser_for(grid.kind).parse(grid)
            if isinstance(parsed, EnumTable):
                registry.register(parsed)
            else:
                registry.register(RecordBuilder(TypeCoercer(registry)).build(grid, parsed))
        except CompileCancelled:
            return None
        except GableError as exc:
            return exc.with_location(sheet=grid.name)
        self.logger.debug("compiled %s sheet %s", grid.kind.value, grid.name)
        return None

    def _collect(
        self,
        grids: Sequence[SheetGrid],
        outcomes: Iterable[GableError | None],
        report: BuildReport,
        failed: set[str],
    ) -> None:
        for grid, error in zip(grids, outcomes):
            if error is None:
                continue
            failed.add(grid.name)
            report.diagnostics.append(error.to_diagnostic())
            self.logger.warning("sheet %s failed: %s", grid.name, error.message)

    def _parse_data(self, grid: SheetGrid, token: CancelToken) -> TableSchema | GableError | None:
        try:
            token.raise_if_cancelled()
            return parser_for(SheetKind.DATA).parse(grid)
        except CompileCancelled:
            return None
        except GableError as exc:
            return exc.with_location(sheet=grid.name)

    def _build_data(
        self, unit: _DataUnit, registry: TableRegistry, token: CancelToken
    ) -> GableError | None:
        try:
            token.raise_if_cancelled()
            table = RecordBuilder(TypeCoercer(registry)).build(unit.grid, unit.schema)
            registry.register(table)
        except CompileCancelled:
            return None
        except GableError as exc:
            return exc.with_location(sheet=unit.grid.name)
        self.logger.debug("compiled data sheet %s (%d rows)", table.name, len(table.records))
        return None

    def _check_references(
        self, schema: TableSchema, registry: TableRegistry, data_names: set[str]
    ) -> None:
        """Reject references to enums or tables that no sheet defines."""

        for item in schema.fields:
            enum_name = item.field_type.enum_name
            if enum_name and enum_name not in registry and enum_name not in data_names:
                raise UnresolvedReferenceError(
                    f"field '{item.name}' references undefined enum {enum_name}",
                    row=DATA_LAYOUT.type_row + 1,
                    column=item.position + 1,
                )
            if enum_name and not isinstance(registry.get(enum_name), EnumTable):
                raise UnresolvedReferenceError(
                    f"field '{item.name}' references {enum_name}, which is not an enum",
                    row=DATA_LAYOUT.type_row + 1,
                    column=item.position + 1,
                )
            link = item.link
            if link is not None and link.table not in registry and link.table not in data_names:
                raise UnresolvedReferenceError(
                    f"field '{item.name}' links to undefined table {link.table}",
                    row=DATA_LAYOUT.link_row + 1,
                    column=item.position + 1,
                )

    def _compile_data(
        self,
        grids: Sequence[SheetGrid],
        pool: Executor,
        registry: TableRegistry,
        report: BuildReport,
        failed: set[str],
        token: CancelToken,
    ) -> None:
        units: dict[str, _DataUnit] = {}
        parsed = pool.map(lambda g: self._parse_data(g, token), grids)
        for grid, outcome in zip(grids, parsed):
            if outcome is None:
                continue
            if isinstance(outcome, GableError):
                failed.add(grid.name)
                report.diagnostics.append(outcome.to_diagnostic())
                continue
            units[grid.name] = _DataUnit(grid=grid, schema=outcome, deps=outcome.dependencies())

        data_names = set(units)
        pending: dict[str, _DataUnit] = {}
        for name, unit in units.items():
            failed_aux = next((dep for dep in unit.deps if dep in failed), None)
            try:
                if failed_aux is not None:
                    raise UnresolvedReferenceError(
                        f"depends on {failed_aux}, which failed to compile", sheet=name
                    )
                self._check_references(unit.schema, registry, data_names)
            except GableError as exc:
                failed.add(name)
                report.diagnostics.append(exc.with_location(sheet=name).to_diagnostic())
                continue
            pending[name] = unit

        # Topological waves over link dependencies between DATA tables.
        while pending:
            if token.cancelled:
                return
            blocked = False
            for name in list(pending):
                failed_dep = next((dep for dep in pending[name].deps if dep in failed), None)
                if failed_dep is not None:
                    del pending[name]
                    failed.add(name)
                    report.diagnostics.append(
                        UnresolvedReferenceError(
                            f"depends on {failed_dep}, which failed to compile", sheet=name
                        ).to_diagnostic()
                    )
                    blocked = True

            wave = [
                unit
                for unit in pending.values()
                if all(dep not in pending for dep in unit.deps)
            ]
            if wave:
                for unit in wave:
                    del pending[unit.grid.name]
                outcomes = pool.map(lambda u: self._build_data(u, registry, token), wave)
                self._collect([unit.grid for unit in wave], outcomes, report, failed)
                continue
            if blocked:
                continue

            cycle = [name for name in pending if self._on_cycle(name, pending)]
            if not cycle:
                cycle = list(pending)
            for name in cycle:
                del pending[name]
                failed.add(name)
            for name in cycle:
                report.diagnostics.append(
                    CyclicDependencyError(
                        f"link dependencies form a cycle: {' -> '.join(cycle)}", sheet=name
                    ).to_diagnostic()
                )

    @staticmethod
    def _on_cycle(start: str, pending: dict[str, _DataUnit]) -> bool:
        stack = [dep for dep in pending[start].deps if dep in pending]
        seen: set[str] = set()
        while stack:
            node = stack.pop()
            if node == start:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(dep for dep in pending[node].deps if dep in pending)
        return False

    # -- export phase ------------------------------------------------------

    def _write(self, path: Path, data: bytes) -> Path:
        try:
            self.writer.write(path, data)
        except OSError as exc:
            raise ExportError(f"cannot write {path}: {exc}") from exc
        return path

    def _export(
        self,
        entry: CompiledTable | EnumTable,
        target: BuildTarget,
        settings: BuildSettings,
        token: CancelToken,
    ) -> TargetResult | None:
        if token.cancelled:
            return None
        stage = TargetStage.FILTERING
        artifacts: list[Path] = []
        try:
            extension = extension_for(target.language)
            if not extension:
                raise TargetConfigError(f"unknown language tag {target.language!r}")
            if target.generate_code and target.code_path is None:
                raise TargetConfigError("generate_code is set but code_path is missing")

            if isinstance(entry, EnumTable):
                stage = TargetStage.CODE_GENERATING
                source = self.generator.generate_enum(entry, target.language)
                code_dir = settings.resolve_path(target.code_path)
                artifacts.append(
                    self._write(code_dir / f"{entry.name}.{extension}", source.encode("utf-8"))
                )
            else:
                serializer = serializer_for(target.format)
                projected = project_schema(entry.schema, target.platform_keyword)

                stage = TargetStage.SERIALIZING
                payload = serializer.serialize(projected, entry.records)
                out_dir = settings.resolve_path(target.output_path)
                artifacts.append(
                    self._write(out_dir / f"{entry.name}.{serializer.extension}", payload)
                )

                if target.generate_code:
                    stage = TargetStage.CODE_GENERATING
                    source = self.generator.generate(projected, target.language)
                    code_dir = settings.resolve_path(target.code_path)
                    artifacts.append(
                        self._write(code_dir / f"{entry.name}.{extension}", source.encode("utf-8"))
                    )
                    if isinstance(serializer, ProtobufSerializer):
                        schema_text = self.generator.generate_proto(projected)
                        artifacts.append(
                            self._write(code_dir / f"{entry.name}.proto", schema_text.encode("utf-8"))
                        )
        except GableError as exc:
            error = exc
            self.logger.warning("target %s failed for %s: %s", target.name, entry.name, exc.message)
        except Exception as exc:  # noqa: BLE001
            error = ExportError(f"unexpected {type(exc).__name__}: {exc}")
            self.logger.exception("target %s crashed for %s", target.name, entry.name)
        else:
            return TargetResult(
                table=entry.name, target=target.name, ok=True, stage=stage, artifacts=artifacts
            )
        error.with_location(sheet=entry.name, target=target.name)
        return TargetResult(
            table=entry.name,
            target=target.name,
            ok=False,
            stage=stage,
            diagnostic=error.to_diagnostic(),
            artifacts=artifacts,
        )

    def _finish(
        self,
        report: BuildReport,
        *,
        cancelled: bool,
        progress: Callable[[RunState, str], None],
    ) -> BuildReport:
        if cancelled:
            report.state = RunState.CANCELLED
        elif report.diagnostics:
            report.state = RunState.FAILED
        else:
            report.state = RunState.DONE
        progress(report.state, f"{len(report.diagnostics)} diagnostic(s)")
        return report


__all__ = [
    "BuildOrchestrator",
    "BuildReport",
    "CancelToken",
    "RunState",
    "TargetResult",
    "TargetStage",
]
