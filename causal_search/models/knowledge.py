# FILE: causal_search/models/knowledge.py
# ======================================================================================
# Causal Search Engine (CSE)
# Knowledge: background constraints on edge directions
# --------------------------------------------------------------------------------------
# What it holds
# -------------
#   • required  : ordered pairs (A, B) meaning the result must contain A --> B
#   • forbidden : ordered pairs (A, B) meaning the result must not contain A --> B
#   • tiers     : ordered groups of variables; an edge from a later tier into an
#                 earlier tier is implicitly forbidden. Per tier, edges inside the
#                 tier can be forbidden, and a tier can be limited to causing only
#                 the next tier.
#
# Variable specs may use '*' as a wildcard ("X*" matches X1, X2, ...). Wildcards are
# expanded against the variables known at the time of insertion.
#
# Invariant
# ---------
# No ordered pair is ever both required and forbidden. Any insertion that would
# break this raises KnowledgeConflictError and leaves the object unchanged.
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

import copy
import re
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..errors import KnowledgeConflictError
from .graph import Graph, Node

Pair = Tuple[str, str]

_COMMA = re.compile(r"\s*,\s*")


def _name(v: Node | str) -> str:
    return v if isinstance(v, str) else v.name


class Knowledge:
    """
    Required/forbidden edge constraints plus an optional tier ordering.

    Parameters
    ----------
    variables : iterable of str, optional
        Variable names known up front (needed for wildcard expansion).
    """

    def __init__(self, variables: Optional[Iterable[str]] = None):
        self._variables: List[str] = []
        self._required: Set[Pair] = set()
        self._forbidden: Set[Pair] = set()
        self._tiers: List[Set[str]] = []
        self._forbidden_within: Set[int] = set()
        self._only_next: Set[int] = set()
        self.default_to_knowledge_layout = False
        for v in variables or ():
            self.add_variable(v)

    # ------------------------------ variables ----------------------------------------

    def add_variable(self, name: str) -> None:
        if "*" in name:
            return
        if name not in self._variables:
            self._variables.append(name)

    @property
    def variables(self) -> List[str]:
        return sorted(self._variables)

    def variables_not_in_tiers(self) -> List[str]:
        tiered = set().union(*self._tiers) if self._tiers else set()
        return sorted(v for v in self._variables if v not in tiered)

    def _extent(self, spec: str) -> List[str]:
        """Expand a (possibly wildcard, possibly comma separated) spec to variable names."""
        out: List[str] = []
        for part in (p for p in _COMMA.split(spec.strip()) if p):
            if "*" in part:
                pattern = re.compile("^" + ".*".join(re.escape(s) for s in part.split("*")) + "$")
                out.extend(v for v in self._variables if pattern.match(v))
            else:
                self.add_variable(part)
                out.append(part)
        return sorted(set(out), key=out.index)

    # ------------------------------ queries ------------------------------------------

    def is_required(self, a: Node | str, b: Node | str) -> bool:
        return (_name(a), _name(b)) in self._required

    def is_forbidden(self, a: Node | str, b: Node | str) -> bool:
        """True if a --> b may not appear in the result (explicitly or by tiers)."""
        x, y = _name(a), _name(b)
        if x == y:
            return False
        return (x, y) in self._forbidden or self.is_forbidden_by_tiers(x, y)

    def is_forbidden_by_tiers(self, a: Node | str, b: Node | str) -> bool:
        ta, tb = self.tier_of(a), self.tier_of(b)
        if ta < 0 or tb < 0:
            return False
        if ta > tb:
            return True
        if ta == tb and ta in self._forbidden_within:
            return True
        return ta in self._only_next and tb >= ta + 2

    def no_edge_required(self, a: Node | str, b: Node | str) -> bool:
        return not (self.is_required(a, b) or self.is_required(b, a))

    def is_empty(self) -> bool:
        return not self._required and not self._forbidden and not any(self._tiers)

    def is_default_to_knowledge_layout(self) -> bool:
        return self.default_to_knowledge_layout

    def required_edges(self) -> List[Pair]:
        return sorted(self._required)

    def forbidden_edges(self) -> List[Pair]:
        """Explicitly forbidden pairs (tier-implied ones are not listed)."""
        return sorted(self._forbidden)

    def is_violated_by(self, graph: Graph) -> bool:
        """True if the graph holds a forbidden directed edge or reverses a required one."""
        for e in graph.edges():
            if e.is_directed():
                tail, head = e.tail_node().name, e.head_node().name
                if self.is_forbidden(tail, head) or self.is_required(head, tail):
                    return True
        return False

    # ------------------------------ tiers --------------------------------------------

    def _ensure_tiers(self, tier: int) -> None:
        if tier < 0:
            raise ValueError(f"Tier index must be >= 0: {tier}")
        while len(self._tiers) <= tier:
            self._tiers.append(set())

    @property
    def num_tiers(self) -> int:
        return len(self._tiers)

    def tier(self, tier: int) -> List[str]:
        if tier < 0 or tier >= len(self._tiers):
            return []
        return sorted(self._tiers[tier])

    def tiers(self) -> List[List[str]]:
        return [sorted(t) for t in self._tiers]

    def tier_of(self, var: Node | str) -> int:
        name = _name(var)
        for i, t in enumerate(self._tiers):
            if name in t:
                return i
        return -1

    def add_to_tier(self, tier: int, spec: str) -> None:
        with self._transaction():
            self._ensure_tiers(tier)
            for v in self._extent(spec):
                for t in self._tiers:
                    t.discard(v)
                self._tiers[tier].add(v)

    def set_tier(self, tier: int, names: Iterable[str]) -> None:
        with self._transaction():
            self._ensure_tiers(tier)
            self._tiers[tier].clear()
            for n in names:
                for v in self._extent(n):
                    for t in self._tiers:
                        t.discard(v)
                    self._tiers[tier].add(v)

    def remove_from_tiers(self, spec: str) -> None:
        for v in self._extent(spec):
            for t in self._tiers:
                t.discard(v)

    def set_tier_forbidden_within(self, tier: int, forbidden: bool = True) -> None:
        with self._transaction():
            self._ensure_tiers(tier)
            if forbidden:
                self._forbidden_within.add(tier)
            else:
                self._forbidden_within.discard(tier)

    def is_tier_forbidden_within(self, tier: int) -> bool:
        return tier in self._forbidden_within

    def set_only_can_cause_next_tier(self, tier: int, only_next: bool = True) -> None:
        with self._transaction():
            self._ensure_tiers(tier)
            if only_next:
                self._only_next.add(tier)
            else:
                self._only_next.discard(tier)

    def is_only_can_cause_next_tier(self, tier: int) -> bool:
        return tier in self._only_next

    # ------------------------------ explicit edges -----------------------------------

    def set_forbidden(self, a: str, b: str) -> None:
        with self._transaction():
            pairs = [(x, y) for x in self._extent(a) for y in self._extent(b) if x != y]
            clash = [p for p in pairs if p in self._required]
            if clash:
                raise KnowledgeConflictError(f"Cannot forbid required edge(s): {_fmt(clash)}")
            self._forbidden.update(pairs)

    def set_required(self, a: str, b: str) -> None:
        with self._transaction():
            pairs = [(x, y) for x in self._extent(a) for y in self._extent(b) if x != y]
            clash = [p for p in pairs if self.is_forbidden(*p)]
            if clash:
                raise KnowledgeConflictError(f"Cannot require forbidden edge(s): {_fmt(clash)}")
            self._required.update(pairs)

    def remove_forbidden(self, a: str, b: str) -> None:
        for x in self._extent(a):
            for y in self._extent(b):
                self._forbidden.discard((x, y))

    def remove_required(self, a: str, b: str) -> None:
        for x in self._extent(a):
            for y in self._extent(b):
                self._required.discard((x, y))

    # ------------------------------ consistency --------------------------------------

    def _transaction(self) -> "_Rollback":
        return _Rollback(self)

    def _check_consistent(self) -> None:
        clash = [p for p in self._required if self.is_forbidden(*p)]
        if clash:
            raise KnowledgeConflictError(
                f"Tier constraints would forbid required edge(s): {_fmt(sorted(clash))}"
            )

    # ------------------------------ (de)serialization --------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tiers": self.tiers(),
            "forbidden_within_tiers": sorted(self._forbidden_within),
            "only_next_tier": sorted(self._only_next),
            "forbidden": [list(p) for p in self.forbidden_edges()],
            "required": [list(p) for p in self.required_edges()],
            "default_to_knowledge_layout": self.default_to_knowledge_layout,
        }

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]], variables: Optional[Iterable[str]] = None) -> "Knowledge":
        """
        Build knowledge from a config section:

            tiers: [[A, B], [C]]
            forbidden_within_tiers: [1]
            only_next_tier: [0]
            forbidden: [[C, A]]
            required: [[A, C]]
            default_to_knowledge_layout: true
        """
        k = cls(variables)
        k.apply_dict(d)
        return k

    def apply_dict(self, d: Optional[Dict[str, Any]]) -> None:
        """Add the constraints of a config section to this object."""
        d = d or {}
        for i, names in enumerate(d.get("tiers") or []):
            self.set_tier(i, [str(n) for n in names])
        for i in d.get("forbidden_within_tiers") or []:
            self.set_tier_forbidden_within(int(i), True)
        for i in d.get("only_next_tier") or []:
            self.set_only_can_cause_next_tier(int(i), True)
        for a, b in d.get("forbidden") or []:
            self.set_forbidden(str(a), str(b))
        for a, b in d.get("required") or []:
            self.set_required(str(a), str(b))
        if "default_to_knowledge_layout" in d:
            self.default_to_knowledge_layout = bool(d["default_to_knowledge_layout"])

    def copy(self) -> "Knowledge":
        return copy.deepcopy(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Knowledge):
            return NotImplemented
        return (
            self._required == other._required
            and self._forbidden == other._forbidden
            and self.tiers() == other.tiers()
            and self._forbidden_within == other._forbidden_within
            and self._only_next == other._only_next
        )

    def __repr__(self) -> str:
        return (
            f"Knowledge(required={len(self._required)}, forbidden={len(self._forbidden)}, "
            f"tiers={self.num_tiers})"
        )


class _Rollback:
    """Snapshot tier state; restore it if the block fails or leaves a conflict."""

    def __init__(self, k: Knowledge):
        self.k = k

    def __enter__(self) -> None:
        self.saved = (
            [set(t) for t in self.k._tiers],
            set(self.k._forbidden_within),
            set(self.k._only_next),
            list(self.k._variables),
        )

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                self.k._check_consistent()
                return False
            except KnowledgeConflictError:
                self._restore()
                raise
        self._restore()
        return False

    def _restore(self) -> None:
        tiers, within, only_next, variables = self.saved
        self.k._tiers = tiers
        self.k._forbidden_within = within
        self.k._only_next = only_next
        self.k._variables = variables


def _fmt(pairs: Iterable[Pair]) -> str:
    return ", ".join(f"{a}-->{b}" for a, b in pairs)
