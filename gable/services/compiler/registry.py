"""Shared table registry populated during the parse phase."""

from __future__ import annotations

import threading
from typing import Iterator

from gable.core.errors import DuplicateTableError, UnresolvedReferenceError

from .schema import CompiledTable, EnumTable

Entry = CompiledTable | EnumTable


class RegistryFrozenError(RuntimeError):
    """Raised when a write is attempted after :meth:`TableRegistry.freeze`."""


class TableRegistry:
    """Write-once store of compiled enums and tables, keyed by name.

    Enums and tables share one namespace. A name is claimed before its sheet
    is compiled so a second sheet with the same name is rejected up front.
    Reads are lock-free once the registry is frozen.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claims: set[str] = set()
        self._entries: dict[str, Entry] = {}
        self._frozen = False

    def claim(self, name: str) -> None:
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(f"registry is frozen, cannot claim {name}")
            if name in self._claims:
                raise DuplicateTableError(
                    f"table name '{name}' is already defined by another sheet",
                    sheet=name,
                )
            self._claims.add(name)

    def register(self, entry: Entry) -> None:
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(f"registry is frozen, cannot register {entry.name}")
            if entry.name in self._entries:
                raise DuplicateTableError(
                    f"table name '{entry.name}' is already registered",
                    sheet=entry.name,
                )
            self._claims.add(entry.name)
            self._entries[entry.name] = entry

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Entry | None:
        return self._entries.get(name)

    def enum(self, name: str) -> EnumTable:
        entry = self._entries.get(name)
        if not isinstance(entry, EnumTable):
            raise UnresolvedReferenceError(f"enum '{name}' is not compiled")
        return entry

    def table(self, name: str) -> CompiledTable:
        entry = self._entries.get(name)
        if not isinstance(entry, CompiledTable):
            raise UnresolvedReferenceError(f"table '{name}' is not compiled")
        return entry

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def enums(self) -> list[EnumTable]:
        return [entry for entry in self._entries.values() if isinstance(entry, EnumTable)]

    def tables(self) -> list[CompiledTable]:
        return [
            entry for entry in self._entries.values() if isinstance(entry, CompiledTable)
        ]


__all__ = ["RegistryFrozenError", "TableRegistry"]
