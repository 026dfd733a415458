"""
Variable storage
"""
from __future__ import annotations

from collections.abc import Iterable

from .blocks import Assignment, Node
from .diag import Diagnostics, Kind


class UnresolvedVariable(KeyError):
    "A variable is used but never assigned"

    def __init__(self, name, pos=None):
        super().__init__(name)
        self.name = name
        self.pos = pos

    def __str__(self):
        return f"Unresolved variable {self.name !r}"


class FrozenError(RuntimeError):
    "The table may not be changed once evaluation has started"


class VariableTable:
    """
    A hierarchical numeric symbol table.

    Lookups fall through to the parent scope. A table is frozen before
    evaluation starts and cannot be modified afterwards.
    """

    def __init__(
        self,
        name: str | None = None,
        parent: VariableTable | None = None,
        init: dict | None = None,
    ):
        self._data: dict[str, float] = dict()
        self.prev = parent
        self._name = name
        self._frozen = False
        if init:
            self._data.update(init)

    @classmethod
    def build(
        cls,
        nodes: Iterable[Node],
        diagnostics: Diagnostics,
        parent: VariableTable | None = None,
        overrides: dict | None = None,
        name: str | None = None,
    ) -> VariableTable:
        """Scan a statement list's assignments, in order.

        A name that's assigned twice keeps the last value.
        Overrides replace whatever the source assigns.
        """
        res = cls(name=name, parent=parent)
        for n in nodes:
            if not isinstance(n, Assignment) or n.modifier == "*":
                continue
            if n.name in res._data:
                diagnostics.add(Kind.DUPLICATE_ASSIGNMENT, f"{n.name !r} was assigned before", n.pos)
            res[n.name] = n.value
        if overrides:
            for k, v in overrides.items():
                res[k] = float(v)
        res.freeze()
        return res

    def __contains__(self, k):
        if k in self._data:
            return True
        if self.prev is None:
            return False
        return k in self.prev

    def __getitem__(self, k) -> float:
        try:
            return self._data[k]
        except KeyError:
            if self.prev is not None:
                try:
                    return self.prev[k]
                except UnresolvedVariable:
                    pass
        raise UnresolvedVariable(k) from None

    def __setitem__(self, k, v):
        if self._frozen:
            raise FrozenError(k, self._name)
        self._data[k] = v

    def __len__(self):
        return len(self._data)

    def freeze(self):
        """Disallow further changes"""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def child(self, name, nodes: Iterable[Node], diagnostics: Diagnostics) -> VariableTable:
        """return a sub-scope holding the assignments in "nodes" """
        if not any(isinstance(n, Assignment) for n in nodes):
            return self
        return self.build(nodes, diagnostics, parent=self, name=name)

    def as_dict(self) -> dict[str, float]:
        "all visible values, inner scopes winning"
        res = self.prev.as_dict() if self.prev is not None else {}
        res.update(self._data)
        return res
