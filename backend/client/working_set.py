from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from turbines.types import Turbine


class WorkingSet:
    """
    Immutable snapshot of the records loaded for the current viewport, keyed by id.

    Never mutated in place: a new fetch builds a new WorkingSet and the owner swaps
    the reference, so readers always see a complete snapshot.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Mapping[int, Turbine] | None = None):
        self._records: Mapping[int, Turbine] = MappingProxyType(dict(records or {}))

    @classmethod
    def from_records(cls, records: Iterable[Turbine]) -> "WorkingSet":
        by_id: dict[int, Turbine] = {}
        for r in records:
            # Same id twice: the later record wins.
            by_id[r.id] = r
        return cls(by_id)

    def get(self, record_id: int) -> Turbine | None:
        return self._records.get(record_id)

    def ids(self) -> set[int]:
        return set(self._records.keys())

    def records(self) -> list[Turbine]:
        return [self._records[k] for k in sorted(self._records)]

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[Turbine]:
        return iter(self.records())

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"WorkingSet(n={len(self._records)})"


EMPTY_WORKING_SET = WorkingSet()
