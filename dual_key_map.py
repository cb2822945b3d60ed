from __future__ import annotations

import logging
from collections.abc import Callable, Generator, Hashable, Iterable, KeysView, Mapping
from enum import Enum
from types import MethodType
from typing import Any, Self, overload

logger = logging.getLogger(__name__)

type DualKeySource[K1, K2, T] = (DualKeyMap[K1, K2, T] |
                                 Mapping[tuple[K1, K2] | tuple[K2, K1], T] |
                                 Iterable[tuple[tuple[K1, K2] | tuple[K2, K1], T]])


class _Sentinel(Enum):
    MISSING = 0

    def __repr__(self) -> str:
        return f"<{self.name.lower()}>"


def _count_iterable(i: Iterable[Any]) -> int:
    return sum(1 for _ in i)


class DualKeyMap[K1: Hashable, K2: Hashable, T]:
    """Map using a couple of keys to reference a value.

    A value is reached with TWO keys, in any order, and every value paired with ONE key is reached with that key
    alone. Each couple ``{k1, k2}`` is stored twice, as ``k1 -> {k2 -> value}`` and ``k2 -> {k1 -> value}``, and a key
    is present only while at least one couple references it.

    Not thread safe. Mutating the map while one of its generators (``entries``, ``keys_couples``, ``values``) is being
    consumed is unsafe: the underlying dicts raise ``RuntimeError`` once their size changes.
    """

    class CoupleNotFoundError(KeyError):
        pass

    def __init__(self, source: DualKeySource[K1, K2, T] | None = None, *, copy_co_key_maps: bool = False) -> None:
        self._map: dict[K1 | K2, dict[K1 | K2, T]] = dict()
        self.copy_co_key_maps: bool = copy_co_key_maps
        if source is not None:
            self.update(source)
            logger.debug("Built %s with %d keys", type(self).__name__, self.size)

    def update(self, source: DualKeySource[K1, K2, T]) -> None:
        match source:
            case DualKeyMap():
                for k1, co_map in source._map.items():
                    self._map.setdefault(k1, dict()).update(co_map)
            case Mapping():
                for (k1, k2), value in source.items():
                    self.set(k1, k2, value)
            case _:
                for (k1, k2), value in source:
                    self.set(k1, k2, value)

    @overload
    def set(self, k1: K1, k2: K2, value: T) -> Self: ...

    @overload
    def set(self, k1: K2, k2: K1, value: T) -> Self: ...

    def set(self, k1, k2, value):
        """Set one value according to two keys. Returns the map itself."""
        self._map.setdefault(k1, dict())[k2] = value
        self._map.setdefault(k2, dict())[k1] = value
        return self

    @overload
    def get[X](self, k1: K1, k2: K2, default: X = None) -> T | X: ...

    @overload
    def get[X](self, k1: K2, k2: K1, default: X = None) -> T | X: ...

    def get(self, k1, k2, default=None):
        """Get one value according to a couple of keys. Order of keys does NOT matter."""
        co_map = self._map.get(k1)
        return default if co_map is None else co_map.get(k2, default)

    @overload
    def get_all_from(self, k1: K1) -> dict[K2, T] | None: ...

    @overload
    def get_all_from(self, k1: K2) -> dict[K1, T] | None: ...

    def get_all_from(self, k1):
        """Give every co-key of ``k1`` with the value of its couple, or ``None`` if ``k1`` is unknown.

        The returned dict is the map's own storage unless the map was built with ``copy_co_key_maps=True``. Changing
        it directly skips the reverse entries and leaves the map inconsistent; use ``set`` and ``delete`` instead.
        """
        co_map = self._map.get(k1)
        if co_map is not None and self.copy_co_key_maps:
            return dict(co_map)
        return co_map

    def has(self, k1: K1 | K2) -> bool:
        return k1 in self._map

    @overload
    def has_couple(self, k1: K1, k2: K2) -> bool: ...

    @overload
    def has_couple(self, k1: K2, k2: K1) -> bool: ...

    def has_couple(self, k1, k2):
        co_map = self._map.get(k1)
        return co_map is not None and k2 in co_map

    def _unlink(self, k1: K1 | K2, k2: K1 | K2) -> None:
        co_map = self._map[k1]
        del co_map[k2]
        if not co_map:
            del self._map[k1]

    @overload
    def delete(self, k1: K1, k2: K2) -> Self: ...

    @overload
    def delete(self, k1: K2, k2: K1) -> Self: ...

    def delete(self, k1, k2):
        """Delete a couple in both directions. Does nothing if the couple is absent."""
        if self.has_couple(k1, k2):
            self._unlink(k1, k2)
            # A self-couple has a single entry, already gone
            if self.has_couple(k2, k1):
                self._unlink(k2, k1)
        return self

    def delete_all_from(self, k1: K1 | K2) -> Self:
        """Delete every couple ``k1`` takes part in."""
        if self.has(k1):
            co_keys = list(self._map[k1])
            for co_key in co_keys:
                self.delete(k1, co_key)
            logger.debug("Deleted %d couples from %r", len(co_keys), k1)
        return self

    @overload
    def pop[X](self, k1: K1, k2: K2, default: X = _Sentinel.MISSING) -> T | X: ...

    @overload
    def pop[X](self, k1: K2, k2: K1, default: X = _Sentinel.MISSING) -> T | X: ...

    def pop(self, k1, k2, default=_Sentinel.MISSING):
        if self.has_couple(k1, k2):
            value = self._map[k1][k2]
            self.delete(k1, k2)
            return value
        if default is _Sentinel.MISSING:
            raise DualKeyMap.CoupleNotFoundError((k1, k2))
        return default

    def clear(self) -> None:
        logger.debug("Clearing %d keys", self.size)
        self._map.clear()

    def copy(self) -> DualKeyMap[K1, K2, T]:
        return type(self)(self, copy_co_key_maps=self.copy_co_key_maps)

    def entries(self) -> Generator[tuple[tuple[K1 | K2, K1 | K2], T], None, None]:
        """Yield every ``((k1, k2), value)`` couple exactly once, though each is stored under both of its keys.

        ``seen`` records, per key, the co-keys already walked from either side; a couple is skipped when its first key
        has already met the second one. Every call gets its own ``seen``, so several traversals can run side by side.
        """
        seen: dict[K1 | K2, set[K1 | K2]] = dict()
        for key1, co_map in self._map.items():
            key1_seen = seen.setdefault(key1, set())
            for key2, value in co_map.items():
                key2_seen = seen.setdefault(key2, set())
                if key2 not in key1_seen:
                    yield (key1, key2), value
                key1_seen.add(key2)
                key2_seen.add(key1)

    def keys_couples(self) -> Generator[tuple[K1 | K2, K1 | K2], None, None]:
        for keys, _ in self.entries():
            yield keys

    def values(self) -> Generator[T, None, None]:
        for _, value in self.entries():
            yield value

    def keys(self) -> KeysView[K1 | K2]:
        """Every key of the map, NOT the key couples (see ``keys_couples``).

        Walking these keys through ``get_all_from`` meets each couple twice, once from each of its keys.
        """
        return self._map.keys()

    def for_each(self, callback: Callable[..., Any], this_arg: Any = _Sentinel.MISSING) -> None:
        """Call ``callback(keys, value)`` for each couple, in ``entries`` order.

        If ``this_arg`` is given, ``callback`` is bound to it and receives it as its first argument.
        """
        if this_arg is not _Sentinel.MISSING:
            callback = MethodType(callback, this_arg)
        for keys, value in self.entries():
            callback(keys, value)

    @property
    def size(self) -> int:
        """Number of keys, NOT of couples: a single ``set("a", "b", value)`` gives 2. O(1)."""
        return len(self._map)

    @property
    def count(self) -> int:
        """Number of couples. O(n)."""
        return _count_iterable(self.values())

    def __getitem__(self, keys: tuple[K1, K2] | tuple[K2, K1]) -> T:
        k1, k2 = keys
        if not self.has_couple(k1, k2):
            raise DualKeyMap.CoupleNotFoundError(keys)
        return self._map[k1][k2]

    def __setitem__(self, keys: tuple[K1, K2] | tuple[K2, K1], value: T) -> None:
        k1, k2 = keys
        self.set(k1, k2, value)

    def __delitem__(self, keys: tuple[K1, K2] | tuple[K2, K1]) -> None:
        k1, k2 = keys
        if not self.has_couple(k1, k2):
            raise DualKeyMap.CoupleNotFoundError(keys)
        self.delete(k1, k2)

    def __contains__(self, k1: K1 | K2) -> bool:
        return self.has(k1)

    def __len__(self) -> int:
        """Same as ``size``: the number of keys. Iterating the map yields couples, so ``len(m)`` is NOT the number of
        items ``iter(m)`` produces; use ``count`` for that."""
        return self.size

    def __iter__(self) -> Generator[tuple[tuple[K1 | K2, K1 | K2], T], None, None]:
        return self.entries()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DualKeyMap):
            return NotImplemented
        return self._map == other._map

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.entries())!r})"
