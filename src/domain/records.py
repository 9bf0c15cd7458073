from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Generic, TypeVar

from .errors import DuplicateRecordError
from .ledger import ActionRecord, Transaction

_T = TypeVar("_T", ActionRecord, Transaction)


class _SeqStore(Mapping[int, _T], Generic[_T]):
    """Insertion-ordered mapping of sequence id to record."""

    def __init__(self) -> None:
        self._items: dict[int, _T] = {}

    def add(self, item: _T) -> None:
        if item.seq in self._items:
            raise DuplicateRecordError(f"Duplicate sequence id {item.seq}", seq=item.seq)
        self._items[item.seq] = item

    def __getitem__(self, seq: int) -> _T:
        return self._items[seq]

    def __iter__(self) -> Iterator[int]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def values_in_order(self) -> list[_T]:
        return list(self._items.values())


class ActionRecordStore(_SeqStore[ActionRecord]):
    @classmethod
    def from_records(cls, records: Iterable[ActionRecord]) -> ActionRecordStore:
        store = cls()
        for record in records:
            store.add(record)
        return store


class TransactionStore(_SeqStore[Transaction]):
    pass
