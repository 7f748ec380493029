"""
Expression tree primitives for query construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Tuple


AND = "AND"
OR = "OR"

LOOKUPS = frozenset(
    {"exact", "iexact", "gt", "gte", "lt", "lte", "contains", "in", "isnull"}
)


def split_lookup(expression: str) -> Tuple[List[str], str]:
    """
    Split ``team__name__iexact`` into the attribute path and the lookup.
    """
    parts = expression.split("__")
    if len(parts) > 1 and parts[-1] in LOOKUPS:
        return parts[:-1], parts[-1]
    return parts, "exact"


@dataclass
class Q:
    """
    Boolean expression container similar to Django-style Q objects.

    Children are either nested :class:`Q` nodes or ``(lookup, value)``
    pairs; they are combined with ``connector``.
    """

    children: List[Any] = field(default_factory=list)
    connector: str = AND
    negated: bool = False

    def __init__(self, *children: Any, **lookups: Any) -> None:
        self.children = list(children)
        self.children.extend(sorted(lookups.items()))
        self.connector = AND
        self.negated = False

    def __or__(self, other: "Q") -> "Q":
        return self._combine(other, OR)

    def __and__(self, other: "Q") -> "Q":
        return self._combine(other, AND)

    def __invert__(self) -> "Q":
        q = self._clone()
        q.negated = not q.negated
        return q

    # Internal helpers -------------------------------------------------
    def _clone(self) -> "Q":
        clone = Q()
        clone.children = list(self.children)
        clone.connector = self.connector
        clone.negated = self.negated
        return clone

    def _combine(self, other: "Q", connector: str) -> "Q":
        if not isinstance(other, Q):
            raise TypeError(f"Cannot combine Q with {type(other).__name__}")
        if other.is_empty():
            return self._clone()
        if self.is_empty():
            return other._clone()
        q = Q()
        q.children = [self._clone(), other._clone()]
        q.connector = connector
        return q

    def is_empty(self) -> bool:
        return not self.children

    def lookups(self) -> List[str]:
        """
        Every lookup expression in the tree, depth first.
        """
        found: List[str] = []
        for child in self.children:
            if isinstance(child, Q):
                found.extend(child.lookups())
            else:
                found.append(child[0])
        return found
