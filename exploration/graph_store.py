"""The canonical node/edge collection and its mutation primitives."""
import logging
from collections.abc import Callable, Iterable
from typing import Literal

from pydantic import BaseModel, Field

from domain.exceptions import (
    DuplicateIdError,
    InvalidStateError,
    NodeNotFoundError,
)
from domain.models import ROOT_NODE_ID, Edge, ExpansionResult, GraphSnapshot, Node

logger = logging.getLogger(__name__)

ChangeKind = Literal["add_node", "add_edge", "add_child", "expansion", "remove_subtree", "replace", "relabel"]


class GraphChange(BaseModel):
    """Structural-change notification published after every mutation."""

    kind: ChangeKind
    node_ids: tuple[str, ...] = Field(default_factory=tuple)
    graph_emptied: bool = False


GraphListener = Callable[[GraphChange], None]


def edge_id_for(target_node_id: str) -> str:
    """Edges are named after the child they lead to (each child has one parent)."""
    return f"edge-{target_node_id}"


def tree_violations(nodes: Iterable[Node], edges: Iterable[Edge]) -> list[str]:
    """
    Check that the edges form a rooted out-tree over the nodes.

    Returns:
        Human-readable problems, empty when the shape is valid
    """
    node_ids = [n.id for n in nodes]
    known = set(node_ids)
    problems: list[str] = []

    incoming: dict[str, int] = {n_id: 0 for n_id in node_ids}
    adj: dict[str, list[str]] = {n_id: [] for n_id in node_ids}
    for edge in edges:
        if edge.source_node_id not in known or edge.target_node_id not in known:
            problems.append(
                f"edge '{edge.id}' references unknown node "
                f"({edge.source_node_id} -> {edge.target_node_id})"
            )
            continue
        incoming[edge.target_node_id] += 1
        adj[edge.source_node_id].append(edge.target_node_id)

    if not node_ids:
        return problems

    roots = [n_id for n_id in node_ids if incoming[n_id] == 0]
    if len(roots) != 1:
        problems.append(f"expected exactly one root, found {len(roots)}")
    for n_id, count in incoming.items():
        if count > 1:
            problems.append(f"node '{n_id}' has {count} parents")

    # Every node must be reachable from the root; anything left over sits on a cycle.
    if len(roots) == 1:
        seen = {roots[0]}
        stack = [roots[0]]
        while stack:
            current = stack.pop()
            for child in adj[current]:
                if child not in seen:
                    seen.add(child)
                    stack.append(child)
        unreachable = [n_id for n_id in node_ids if n_id not in seen]
        if unreachable:
            problems.append(f"nodes unreachable from root '{roots[0]}': {', '.join(unreachable)}")

    return problems


class GraphStore:
    """
    Sole owner and mutator of the exploration graph.

    Nodes and edges are kept in insertion order (layout depends on it).
    Every mutation is validated before anything is written, so a failed
    call leaves the graph untouched, and is followed by exactly one
    GraphChange notification.
    """

    def __init__(self, root_id: str = ROOT_NODE_ID):
        self.root_id = root_id
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}
        self._listeners: list[GraphListener] = []

    # === Notifications ===

    def subscribe(self, listener: GraphListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: GraphChange) -> None:
        for listener in list(self._listeners):
            listener(change)

    # === Queries ===

    def __len__(self) -> int:
        return len(self._nodes)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> Node:
        """Return a copy of a node."""
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node.model_copy(deep=True)

    def children_of(self, node_id: str) -> list[str]:
        return [e.target_node_id for e in self._edges.values() if e.source_node_id == node_id]

    def parent_of(self, node_id: str) -> str | None:
        return next(
            (e.source_node_id for e in self._edges.values() if e.target_node_id == node_id),
            None,
        )

    def has_root(self) -> bool:
        return self.root_id in self._nodes

    def first_node_id(self) -> str | None:
        return next(iter(self._nodes), None)

    def snapshot(self) -> GraphSnapshot:
        """Immutable copy of the current nodes and edges."""
        return GraphSnapshot(
            nodes=tuple(n.model_copy(deep=True) for n in self._nodes.values()),
            edges=tuple(e.model_copy(deep=True) for e in self._edges.values()),
        )

    def check_tree(self) -> list[str]:
        """Problems with the current shape; empty for a valid rooted tree."""
        return tree_violations(self._nodes.values(), self._edges.values())

    def descendants_of(self, node_id: str) -> list[str]:
        """The node and everything reachable from it via outgoing edges, in visit order."""
        if node_id not in self._nodes:
            raise NodeNotFoundError(node_id)
        order = [node_id]
        seen = {node_id}
        stack = [node_id]
        while stack:
            current = stack.pop()
            for child in self.children_of(current):
                if child not in seen:
                    seen.add(child)
                    order.append(child)
                    stack.append(child)
        return order

    # === Mutations ===

    def add_node(self, node: Node) -> None:
        """Append a node. Fails on id collision."""
        if node.id in self._nodes:
            raise DuplicateIdError("node", node.id)
        self._nodes[node.id] = node.model_copy(deep=True)
        self._notify(GraphChange(kind="add_node", node_ids=(node.id,)))

    def add_edge(self, edge: Edge) -> None:
        """Append an edge between existing nodes. Fails on id collision."""
        if edge.id in self._edges:
            raise DuplicateIdError("edge", edge.id)
        for endpoint in (edge.source_node_id, edge.target_node_id):
            if endpoint not in self._nodes:
                raise NodeNotFoundError(endpoint)
        self._edges[edge.id] = edge.model_copy(deep=True)
        self._notify(GraphChange(kind="add_edge", node_ids=(edge.source_node_id, edge.target_node_id)))

    def add_child(self, parent_id: str, node: Node, edge_id: str | None = None) -> Edge:
        """Add a node together with its incoming edge as one mutation."""
        if parent_id not in self._nodes:
            raise NodeNotFoundError(parent_id)
        if node.id in self._nodes:
            raise DuplicateIdError("node", node.id)
        edge = Edge(
            id=edge_id or edge_id_for(node.id),
            source_node_id=parent_id,
            target_node_id=node.id,
        )
        if edge.id in self._edges:
            raise DuplicateIdError("edge", edge.id)

        self._nodes[node.id] = node.model_copy(deep=True)
        self._edges[edge.id] = edge
        self._notify(GraphChange(kind="add_child", node_ids=(parent_id, node.id)))
        return edge.model_copy()

    def apply_expansion_result(self, node_id: str, result: ExpansionResult) -> None:
        """
        Turn a node into an answered node and attach its follow-up children.

        All checks run before the first write; listeners only ever observe
        the graph before or after the whole expansion.
        """
        target = self._nodes.get(node_id)
        if target is None:
            raise NodeNotFoundError(node_id)
        if target.is_expanded:
            raise InvalidStateError("is_expanded", "False", "True")

        new_node_ids: set[str] = set()
        for child in result.new_question_nodes:
            if child.id in self._nodes or child.id in new_node_ids:
                raise DuplicateIdError("node", child.id)
            new_node_ids.add(child.id)

        new_edge_ids: set[str] = set()
        wired: set[str] = set()
        for edge in result.new_edges:
            if edge.id in self._edges or edge.id in new_edge_ids:
                raise DuplicateIdError("edge", edge.id)
            if edge.source_node_id != node_id:
                raise InvalidStateError("edge.source_node_id", node_id, edge.source_node_id)
            if edge.target_node_id not in new_node_ids or edge.target_node_id in wired:
                raise InvalidStateError(
                    "edge.target_node_id", "one edge per new question node", edge.target_node_id
                )
            new_edge_ids.add(edge.id)
            wired.add(edge.target_node_id)
        if wired != new_node_ids:
            missing = ", ".join(sorted(new_node_ids - wired))
            raise InvalidStateError("new_edges", "an edge to every new node", f"unwired: {missing}")

        target.kind = "main"
        target.is_expanded = True
        target.label = result.label
        target.content = result.content
        target.sources = [s.model_copy() for s in result.sources]
        target.images = [i.model_copy() for i in result.images]
        for child in result.new_question_nodes:
            self._nodes[child.id] = child.model_copy(deep=True)
        for edge in result.new_edges:
            self._edges[edge.id] = edge.model_copy()

        self._notify(
            GraphChange(
                kind="expansion",
                node_ids=(node_id, *(c.id for c in result.new_question_nodes)),
            )
        )

    def remove_subtree(self, node_id: str) -> set[str]:
        """
        Remove a node, all its descendants and every edge touching them.

        Returns:
            The removed node ids
        """
        order = self.descendants_of(node_id)
        removed = set(order)
        for n_id in order:
            del self._nodes[n_id]
        self._edges = {
            e_id: e
            for e_id, e in self._edges.items()
            if e.source_node_id not in removed and e.target_node_id not in removed
        }

        emptied = not self.has_root()
        if emptied:
            logger.info("Graph emptied by removing subtree at '%s'", node_id)
        self._notify(GraphChange(kind="remove_subtree", node_ids=tuple(order), graph_emptied=emptied))
        return removed

    def replace(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Swap in a whole new graph (session load, import, reset)."""
        nodes = list(nodes)
        edges = list(edges)

        seen_nodes: set[str] = set()
        for node in nodes:
            if node.id in seen_nodes:
                raise DuplicateIdError("node", node.id)
            seen_nodes.add(node.id)
        seen_edges: set[str] = set()
        for edge in edges:
            if edge.id in seen_edges:
                raise DuplicateIdError("edge", edge.id)
            seen_edges.add(edge.id)
        problems = tree_violations(nodes, edges)
        if problems:
            raise InvalidStateError("graph shape", "rooted tree", "; ".join(problems))

        previous = tuple(self._nodes)
        self._nodes = {n.id: n.model_copy(deep=True) for n in nodes}
        self._edges = {e.id: e.model_copy() for e in edges}

        # Imported graphs may root elsewhere; follow whatever has no parent.
        targets = {e.target_node_id for e in edges}
        self.root_id = next((n.id for n in nodes if n.id not in targets), ROOT_NODE_ID)

        # Listeners get the dropped ids so in-flight work on them can be cancelled.
        self._notify(
            GraphChange(
                kind="replace",
                node_ids=previous,
                graph_emptied=not self._nodes,
            )
        )

    def clear(self) -> None:
        """Drop every node and edge."""
        self.replace([], [])

    def relabel(self, node_id: str, label: str) -> None:
        """Change a node's label; ids and structure are untouched."""
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        node.label = label
        self._notify(GraphChange(kind="relabel", node_ids=(node_id,)))
