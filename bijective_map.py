from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping, MutableMapping, Iterable, ItemsView, Iterator, KeysView, ValuesView
from enum import Enum
from itertools import chain
from typing import Self, TypeVar

from bijective_map_settings import Settings

logger: logging.Logger = logging.getLogger(__name__)


class Absent(Enum):
    """Marks a missing key or value. ``None`` is a perfectly good key or value, so it can't be used for this."""
    ABSENT = 0

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent.ABSENT

K = TypeVar("K", bound=Hashable)
V = TypeVar("V", bound=Hashable)
X = TypeVar("X")


class BijectiveMap(MutableMapping[K, V]):
    """
    A one-to-one mapping between keys and values with O(1) lookup in both directions.

    Every key maps to exactly one value and every value maps back to exactly one key. The pairs are kept in two
    dictionaries, ``_forward`` (key -> value) and ``_backward`` (value -> key), which only ever change together.

    Assigning through a key (``m[key] = value``) may repoint that key to a value nobody uses yet; assigning a value
    that already belongs to another key raises ``BijectiveMap.InvariantViolation`` and leaves the map untouched.
    ``m.backward`` is the same map seen from the value side, so ``m.backward[value] = key`` repoints values instead.
    """

    Absent = Absent

    class InvariantViolation(ValueError):
        def __init__(self, message: str, key: object = ABSENT, value: object = ABSENT,
                     existing: object = ABSENT) -> None:
            super().__init__(message)
            self.key = key
            self.value = value
            self.existing = existing

    def __init__(self, source: Mapping[K, V] | Iterable[tuple[K, V]] | None = None) -> None:
        self._forward: dict[K, V] = dict()
        self._backward: dict[V, K] = dict()
        match source:
            case None:
                pass
            case Mapping():
                self._load(source.items())
            case str() | bytes():
                raise TypeError(f"Can't build a {type(self).__name__} from {type(source).__name__}")
            case Iterable():
                self._load(source)
            case _:
                raise TypeError(f"{type(self).__name__} must receive a Mapping or an iterable of pairs, "
                                f"not {type(source).__name__}")

    @classmethod
    def from_pairs(cls, *pairs: tuple[K, V]) -> Self:
        return cls(pairs)

    @classmethod
    def _direct_init(cls, forward: dict[K, V], backward: dict[V, K]) -> Self:
        out: BijectiveMap[K, V] = cls()
        out._forward = forward
        out._backward = backward
        return out

    def _load(self, pairs: Iterable[tuple[K, V]]) -> None:
        # Built on the side so a bad source leaves nothing half inserted
        forward: dict[K, V] = dict()
        backward: dict[V, K] = dict()
        for key, value in pairs:
            if key in forward:
                raise BijectiveMap.InvariantViolation(
                    f"Attempted to build a {type(self).__name__} from non-unique pairs: key {key!r} appears twice",
                    key, value, forward[key]
                )
            if value in backward:
                raise BijectiveMap.InvariantViolation(
                    f"Attempted to build a {type(self).__name__} from a non-bijective source: "
                    f"value {value!r} belongs to both {backward[value]!r} and {key!r}",
                    key, value, backward[value]
                )
            forward[key] = value
            backward[value] = key

        self._forward.update(forward)
        self._backward.update(backward)
        self._after_mutation(f"loaded {len(forward)} pairs")

    def conflict(self, key: K, value: V, strict: bool = False) -> BijectiveMap.InvariantViolation | None:
        """
        Returns the violation that setting ``key`` to ``value`` would raise, or None if the assignment is allowed.

        With ``strict`` the check matches ``insert``: the key may not already be paired with some other value either.
        """
        if value in self._backward:
            current_key: K = self._backward[value]
            if current_key == key:
                return None
            return BijectiveMap.InvariantViolation(
                f"Attempted to set a non-unique pair in a {type(self).__name__}: "
                f"{value!r} is already paired with {current_key!r}",
                key, value, current_key
            )
        if strict and key in self._forward:
            return BijectiveMap.InvariantViolation(
                f"Attempted to insert a non-unique pair in a {type(self).__name__}: "
                f"{key!r} is already paired with {self._forward[key]!r}",
                key, value, self._forward[key]
            )
        return None

    def _set_pair(self, key: K | Absent, value: V | Absent, strict: bool = False) -> None:
        # Matched on identity, a value pattern would go through the key's or value's own __eq__
        match key is ABSENT, value is ABSENT:
            case True, True:
                return

            case False, True:
                if key not in self._forward:
                    return
                old_value: V = self._forward.pop(key)
                del self._backward[old_value]
                self._after_mutation(f"removed {key!r} -> {old_value!r}")

            case True, False:
                if value not in self._backward:
                    return
                old_key: K = self._backward.pop(value)
                del self._forward[old_key]
                self._after_mutation(f"removed {old_key!r} -> {value!r}")

            case False, False:
                if self._write_pair(key, value, strict):
                    self._after_mutation(f"set {key!r} -> {value!r}")

    def _write_pair(self, key: K, value: V, strict: bool = False) -> bool:
        """Checks a pair and writes it into both dictionaries. Returns False if it was already there."""
        violation = self.conflict(key, value, strict)
        if violation is not None:
            logger.debug(f"Rejected {key!r} -> {value!r}: {violation}")
            raise violation

        current_value: V | Absent = self._forward.get(key, ABSENT)
        if current_value is not ABSENT:
            if value in self._backward:
                # Already paired with exactly this value
                return False
            del self._backward[current_value]

        self._forward[key] = value
        self._backward[value] = key
        return True

    def _after_mutation(self, action: str) -> None:
        if Settings.debug:
            logger.debug(f"{type(self).__name__} {action}")
        if Settings.check_invariants:
            self.check_invariants()

    def check_invariants(self) -> None:
        """Walks both dictionaries and raises if they no longer hold exactly the same pairs."""
        if len(self._forward) != len(self._backward):
            raise BijectiveMap.InvariantViolation(
                f"{type(self).__name__} diverged: {len(self._forward)} keys but {len(self._backward)} values"
            )
        for key, value in self._forward.items():
            backward_key = self._backward.get(value, ABSENT)
            if backward_key is ABSENT or backward_key != key:
                raise BijectiveMap.InvariantViolation(
                    f"{type(self).__name__} diverged: {key!r} -> {value!r} but {value!r} -> {backward_key!r}",
                    key, value, backward_key
                )

    def set(self, key: K | Absent = ABSENT, value: V | Absent = ABSENT) -> None:
        """
        Sets a pair, addressed through the key.

        If only one side is given, the pair holding it is removed (a no-op when there is none).
        """
        self._set_pair(key, value)

    def set_key(self, value: V, key: K | Absent = ABSENT) -> None:
        """Sets a pair, addressed through the value. ``set_key(value)`` removes whatever pair holds the value."""
        self.backward._set_pair(value, key)

    def insert(self, key: K, value: V) -> None:
        """Like ``set``, but refuses to move a key that is already paired with a different value."""
        self._set_pair(key, value, strict=True)

    def update(self, other: Mapping[K, V] | Iterable[tuple[K, V]] = (), /, **kwargs: V) -> None:
        # All or nothing: every write is journaled with the value it displaced and undone in reverse on failure
        pairs = other.items() if isinstance(other, Mapping) else other
        journal: list[tuple[K, V, V | Absent]] = []
        try:
            for key, value in chain(pairs, kwargs.items()):
                previous: V | Absent = self._forward.get(key, ABSENT)
                if self._write_pair(key, value):
                    journal.append((key, value, previous))
        except BaseException:
            for key, value, previous in reversed(journal):
                del self._backward[value]
                if previous is ABSENT:
                    del self._forward[key]
                else:
                    self._forward[key] = previous
                    self._backward[previous] = key
            raise

        if journal:
            self._after_mutation(f"updated {len(journal)} pairs")

    def remove_all(self, keeping_capacity: bool = False) -> None:
        """
        Removes every pair.

        Dicts never shrink when entries are deleted, so ``keeping_capacity`` drains them one pair at a time to keep
        their hash tables allocated for reinsertion; otherwise ``dict.clear`` frees them.
        """
        if keeping_capacity:
            while self._forward:
                _key, value = self._forward.popitem()
                del self._backward[value]
        else:
            self._forward.clear()
            self._backward.clear()
        self._after_mutation("removed all pairs")

    def clear(self) -> None:
        self.remove_all()

    def __setitem__(self, key: K, value: V | Absent) -> None:
        self._set_pair(key, value)

    def __delitem__(self, key: K) -> None:
        if key not in self._forward:
            raise KeyError(key)
        self._set_pair(key, ABSENT)

    def __getitem__(self, key: K) -> V:
        return self._forward[key]

    def __len__(self) -> int:
        return len(self._forward)

    def __iter__(self) -> Iterator[K]:
        return iter(self._forward)

    def __contains__(self, key: object) -> bool:
        return key in self._forward

    def __eq__(self, other: object) -> bool:
        match other:
            case BijectiveMap():
                return self._forward == other._forward
            case Mapping():
                return self._forward == dict(other.items())
            case _:
                return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._forward!r})"

    def __copy__(self) -> Self:
        return self.copy()

    def copy(self) -> Self:
        return self._direct_init(dict(self._forward), dict(self._backward))

    def items(self) -> ItemsView[K, V]:
        return self._forward.items()

    def keys(self) -> KeysView[K]:
        return self._forward.keys()

    def values(self) -> ValuesView[V]:
        return self._forward.values()

    def has_value(self, value: object) -> bool:
        return value in self._backward

    def get(self, key: K, default: X = None) -> V | X:
        return self._forward.get(key, default)

    def get_key(self, value: V, default: X = None) -> K | X:
        return self._backward.get(value, default)

    def pop(self, key: K, default: X | Absent = ABSENT) -> V | X:
        if key not in self._forward:
            if default is ABSENT:
                raise KeyError(key)
            return default
        value: V = self._forward[key]
        self._set_pair(key, ABSENT)
        return value

    def pop_key(self, value: V, default: X | Absent = ABSENT) -> K | X:
        return self.backward.pop(value, default)

    @property
    def is_empty(self) -> bool:
        return not self._forward

    @property
    def backward(self) -> BijectiveMap[V, K]:
        return self._direct_init(self._backward, self._forward)


InvariantViolation = BijectiveMap.InvariantViolation
