"""
Separating-set record produced by the adjacency search.

Keys are unordered node pairs; values are the conditioning tuple that made the
pair independent, together with the p-value of that test. The record lives from
the end of FAS until collider orientation has consumed it.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from .graph import Node

_Pair = FrozenSet[Node]


class SepsetMap:
    def __init__(self) -> None:
        self._sepsets: Dict[_Pair, Tuple[Node, ...]] = {}
        self._p_values: Dict[_Pair, float] = {}

    def set(self, x: Node, y: Node, z: Sequence[Node], p_value: float = 1.0) -> None:
        key = frozenset((x, y))
        self._sepsets[key] = tuple(z)
        self._p_values[key] = float(p_value)

    def get(self, x: Node, y: Node) -> Optional[Tuple[Node, ...]]:
        """Conditioning set that separated x and y, or None if they were never separated."""
        return self._sepsets.get(frozenset((x, y)))

    def p_value(self, x: Node, y: Node) -> Optional[float]:
        return self._p_values.get(frozenset((x, y)))

    def remove(self, x: Node, y: Node) -> None:
        key = frozenset((x, y))
        self._sepsets.pop(key, None)
        self._p_values.pop(key, None)

    def pairs(self) -> List[Tuple[Node, Node]]:
        return sorted(tuple(sorted(k)) for k in self._sepsets)  # type: ignore[misc]

    def items(self) -> Iterator[Tuple[Tuple[Node, Node], Tuple[Node, ...]]]:
        for pair in self.pairs():
            yield pair, self._sepsets[frozenset(pair)]

    def update(self, other: "SepsetMap") -> None:
        self._sepsets.update(other._sepsets)
        self._p_values.update(other._p_values)

    def copy(self) -> "SepsetMap":
        out = SepsetMap()
        out.update(self)
        return out

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        """Name-keyed, JSON-serializable form: {"A|C": {"z": ["B"], "p": 0.41}}."""
        out: Dict[str, Dict[str, object]] = {}
        for (x, y), z in self.items():
            out[f"{x.name}|{y.name}"] = {
                "z": [n.name for n in z],
                "p": self._p_values[frozenset((x, y))],
            }
        return out

    def __contains__(self, pair: object) -> bool:
        if isinstance(pair, tuple) and len(pair) == 2:
            return frozenset(pair) in self._sepsets
        return False

    def __len__(self) -> int:
        return len(self._sepsets)

    def __repr__(self) -> str:
        return f"SepsetMap({len(self)} pairs)"
