"""Build settings: which targets to export and where artifacts go.

Settings are plain values handed to the orchestrator for each run; nothing
here is cached at module level.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from gable.core.errors import ConfigError
from gable.services.export.languages import default_keyword, normalize_language

CONFIG_DIR = Path(__file__).resolve().parent
EXAMPLE_SETTINGS_PATH = CONFIG_DIR / "gable.example.yaml"
DEFAULT_SETTINGS_NAME = "gable.yaml"


class SettingsValidationError(ConfigError):
    """Raised when a settings file does not match the expected structure."""


class BuildTarget(BaseModel):
    """One configured export job (language, format and output locations)."""

    model_config = ConfigDict(extra="allow")

    name: str
    language: str
    keyword: str | None = None
    enabled: bool = True
    format: str = "json"
    output_path: Path
    generate_code: bool = False
    code_path: Path | None = None

    @property
    def platform_keyword(self) -> str:
        """Platform tag used for field filtering; defaults to the language keyword."""

        if self.keyword is not None:
            return self.keyword.strip().lower()
        return default_keyword(self.language)

    @property
    def language_tag(self) -> str:
        return normalize_language(self.language)


class BuildSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    workspace: Path = Path(".")
    max_workers: int = Field(default=4, ge=1)
    targets: List[BuildTarget] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_target_names(self) -> "BuildSettings":
        seen: set[str] = set()
        for target in self.targets:
            if target.name in seen:
                raise ValueError(f"duplicate target name: {target.name}")
            seen.add(target.name)
        return self

    def resolve_path(self, path: str | Path) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return Path(self.workspace) / candidate

    def enabled_targets(self, names: Iterable[str] | None = None) -> list[BuildTarget]:
        """Enabled targets, optionally narrowed to ``names``; unknown names raise."""

        selected = [target for target in self.targets if target.enabled]
        if not names:
            return selected
        wanted = list(names)
        known = {target.name for target in self.targets}
        missing = [name for name in wanted if name not in known]
        if missing:
            raise ConfigError(f"unknown build target(s): {', '.join(missing)}")
        return [target for target in selected if target.name in wanted]


def load_build_settings(
    path: str | Path,
    *,
    workspace: str | Path | None = None,
) -> BuildSettings:
    """Load build settings from YAML.

    A relative ``workspace`` in the file is resolved against the file's
    directory; an explicit ``workspace`` argument overrides the file.
    """

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(f"settings file not found: {cfg_path}")

    yaml = YAML(typ="safe")
    try:
        with cfg_path.open("r", encoding="utf-8") as fh:
            data = yaml.load(fh) or {}
    except YAMLError as exc:
        raise SettingsValidationError(f"invalid YAML in {cfg_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsValidationError(f"{cfg_path} must contain a mapping at the top level")

    if workspace is not None:
        data["workspace"] = str(workspace)
    else:
        base = Path(data.get("workspace") or ".")
        if not base.is_absolute():
            base = cfg_path.resolve().parent / base
        data["workspace"] = str(base)

    try:
        return BuildSettings.model_validate(data)
    except ValidationError as exc:
        raise SettingsValidationError(f"invalid settings in {cfg_path}: {exc}") from exc


__all__ = [
    "BuildSettings",
    "BuildTarget",
    "CONFIG_DIR",
    "DEFAULT_SETTINGS_NAME",
    "EXAMPLE_SETTINGS_PATH",
    "SettingsValidationError",
    "load_build_settings",
]
