"""Lookup table for marketplace records that may be known by several IDs."""

from __future__ import annotations

from typing import Generic, Protocol, TypeVar


class Identified(Protocol):
    @property
    def identifiers(self) -> tuple[str, ...]: ...


R = TypeVar("R", bound=Identified)
V = TypeVar("V")


class RecordIndex(Generic[R, V]):
    """Maps records to values, treating two records as the same if any identifier matches.

    Setting a record that shares an identifier with one already stored
    replaces that entry (record and value) and keeps its position.
    """

    def __init__(self) -> None:
        self._slots: list[tuple[R, V]] = []
        self._by_id: dict[str, int] = {}

    def _find(self, record: R) -> int | None:
        for identifier in record.identifiers:
            slot = self._by_id.get(identifier)
            if slot is not None:
                return slot
        return None

    def set(self, record: R, value: V) -> None:
        slot = self._find(record)
        if slot is None:
            slot = len(self._slots)
            self._slots.append((record, value))
        else:
            self._slots[slot] = (record, value)
        for identifier in record.identifiers:
            self._by_id[identifier] = slot

    def get(self, record: R) -> V | None:
        slot = self._find(record)
        if slot is None:
            return None
        return self._slots[slot][1]

    def __contains__(self, record: R) -> bool:
        return self._find(record) is not None

    def __len__(self) -> int:
        return len(self._slots)

    def entries(self) -> list[tuple[R, V]]:
        return list(self._slots)
