from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Type, TypeVar

T = TypeVar("T")


class InMemorySession:
    """Table store keyed by model class.

    Stands in for the relational datastore: every model class is a table,
    rows are the dataclass instances themselves and ``id`` is assigned on
    insert. Writes are visible immediately; ``commit`` and ``close`` exist so
    calling code reads like it would against a real session.
    """

    def __init__(self) -> None:
        self._store: Dict[Type[Any], List[Any]] = defaultdict(list)
        self._id_counters: Dict[Type[Any], int] = defaultdict(int)

    def add(self, instance: Any) -> None:
        if getattr(instance, "id", 0) in (0, None):
            self._id_counters[type(instance)] += 1
            instance.id = self._id_counters[type(instance)]
        else:
            self._id_counters[type(instance)] = max(self._id_counters[type(instance)], instance.id)
        self._store[type(instance)].append(instance)

    def add_all(self, instances: Iterable[Any]) -> None:
        for instance in instances:
            self.add(instance)

    def merge(self, instance: Any) -> Any:
        """Insert ``instance`` or replace the row that already has its id."""
        rows = self._store[type(instance)]
        for index, existing in enumerate(rows):
            if existing.id == instance.id:
                rows[index] = instance
                return instance
        self.add(instance)
        return instance

    def delete(self, model: Type[T], ids: Iterable[int]) -> int:
        targets = set(ids)
        rows = self._store.get(model, [])
        kept = [obj for obj in rows if obj.id not in targets]
        removed = len(rows) - len(kept)
        self._store[model] = kept
        return removed

    def delete_where(self, model: Type[T], predicate: Callable[[T], bool]) -> List[T]:
        removed = self.filter(model, predicate)
        self.delete(model, [obj.id for obj in removed])
        return removed

    def commit(self) -> None:
        return None

    def close(self) -> None:
        return None

    def get(self, model: Type[T], instance_id: int) -> Optional[T]:
        for obj in self._store.get(model, []):
            if getattr(obj, "id", None) == instance_id:
                return obj
        return None

    def all(self, model: Type[T]) -> List[T]:
        return list(self._store.get(model, []))

    def filter(self, model: Type[T], predicate: Callable[[T], bool]) -> List[T]:
        return [obj for obj in self._store.get(model, []) if predicate(obj)]

    def first(self, model: Type[T], predicate: Callable[[T], bool]) -> Optional[T]:
        return next((obj for obj in self._store.get(model, []) if predicate(obj)), None)


_default_session = InMemorySession()


@contextmanager
def get_session() -> Iterator[InMemorySession]:
    session = _default_session
    try:
        yield session
    finally:
        session.close()


def reset_session() -> InMemorySession:
    global _default_session
    _default_session = InMemorySession()
    return _default_session
