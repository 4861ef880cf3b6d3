"""
Declarative precondition graphs.

A graph is a tree of four node variants evaluated by ``evaluate_node``:

- ``Condition``: predicate plus a violation factory called only on failure.
- ``Action``: bookkeeping step that always passes.
- ``Sequence``: children in order, stops at the first failure.
- ``Selector``: children in order, stops at the first success. When every
  child fails, the last child's result is returned, so a selector never
  reports more than one violation.

Each operation name maps to one root node in a ``GraphRegistry``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from seamgrid.config import DEFAULT_CONFIG, TilingConfig
from seamgrid.contracts import DecisionResult, Operation, Violation
from seamgrid.errors import GraphNotFoundError
from seamgrid.tiling import Tiling

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionContext:
    """Everything a graph may look at. Built per evaluation, never stored."""

    state: Tiling
    op: str
    params: Mapping[str, object] = field(default_factory=dict)
    config: TilingConfig = DEFAULT_CONFIG

    def __post_init__(self):
        object.__setattr__(self, "op", operation_key(self.op))
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def param(self, key: str, default: object = None) -> object:
        value = self.params.get(key)
        return default if value is None else value


@dataclass(frozen=True)
class Condition:
    label: str
    predicate: Callable[[DecisionContext], bool]
    violation: Callable[[DecisionContext], Violation]


@dataclass(frozen=True)
class Action:
    label: str
    effect: Callable[[DecisionContext], None]


@dataclass(frozen=True)
class Sequence:
    children: Tuple["Node", ...]
    label: str = "sequence"


@dataclass(frozen=True)
class Selector:
    children: Tuple["Node", ...]
    label: str = "selector"


Node = Union[Condition, Action, Sequence, Selector]

_PASS = DecisionResult(valid=True)


def sequence(*children: Node, label: str = "sequence") -> Sequence:
    return Sequence(children=tuple(children), label=label)


def selector(*children: Node, label: str = "selector") -> Selector:
    return Selector(children=tuple(children), label=label)


def evaluate_node(node: Node, ctx: DecisionContext) -> DecisionResult:
    """Interpret one node (and its subtree) against ``ctx``."""
    if isinstance(node, Condition):
        if node.predicate(ctx):
            return _PASS
        return DecisionResult.rejected(node.violation(ctx))

    if isinstance(node, Action):
        node.effect(ctx)
        return _PASS

    if isinstance(node, Sequence):
        for child in node.children:
            result = evaluate_node(child, ctx)
            if not result.valid:
                return result
        return _PASS

    if isinstance(node, Selector):
        result = _PASS
        for child in node.children:
            result = evaluate_node(child, ctx)
            if result.valid:
                return result
        return result

    raise TypeError(f"Unknown decision node: {node!r}")


def operation_key(op: Union[Operation, str]) -> str:
    return op.value if isinstance(op, Operation) else str(op)


class GraphRegistry:
    """Operation name -> root node."""

    def __init__(self, graphs: Optional[Mapping[str, Node]] = None):
        self._graphs: Dict[str, Node] = {}
        for op, root in (graphs or {}).items():
            self.register(op, root)

    def register(self, op: Union[Operation, str], root: Node) -> "GraphRegistry":
        self._graphs[operation_key(op)] = root
        return self

    def get(self, op: Union[Operation, str]) -> Node:
        key = operation_key(op)
        if key not in self._graphs:
            raise GraphNotFoundError(key)
        return self._graphs[key]

    def __contains__(self, op: object) -> bool:
        return operation_key(op) in self._graphs

    def operations(self) -> List[str]:
        return sorted(self._graphs)


class DecisionEngine:
    def __init__(self, registry: GraphRegistry):
        self.registry = registry

    def evaluate(self, op: Union[Operation, str], ctx: DecisionContext) -> DecisionResult:
        """Run the graph registered for ``op``.

        Raises:
            GraphNotFoundError: if no graph is registered for ``op``.
        """
        root = self.registry.get(op)
        result = evaluate_node(root, ctx)
        if not result.valid:
            logger.debug("%s rejected: %s", operation_key(op), ", ".join(result.codes))
        return result

    def check(
        self,
        op: Union[Operation, str],
        state: Tiling,
        config: TilingConfig = DEFAULT_CONFIG,
        **params,
    ) -> DecisionResult:
        """Build a context from keyword parameters and evaluate ``op``."""
        return self.evaluate(op, DecisionContext(state=state, op=op, params=params, config=config))
