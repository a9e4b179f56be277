"""Deterministic left-to-right layered layout of the exploration graph."""
from collections.abc import Sequence

from pydantic import BaseModel, Field

from domain.models import ROOT_NODE_ID, Edge, GraphSnapshot, Node, NodePosition


class LayoutConfig(BaseModel):
    """Box sizes and spacing used by the layout. Fixed per engine instance."""

    main_node_width: float = Field(default=600.0, gt=0)
    main_node_height: float = Field(default=500.0, gt=0)
    question_node_width: float = Field(default=300.0, gt=0)
    question_node_height: float = Field(default=100.0, gt=0)
    node_separation: float = Field(default=800.0, ge=0, description="Gap between nodes of one rank")
    rank_separation: float = Field(default=500.0, ge=0, description="Gap between rank columns")
    margin_x: float = Field(default=100.0, ge=0)
    margin_y: float = Field(default=0.0, ge=0)


class LayoutEngine:
    """
    Layered layout, ranks flowing left to right.

    - Rank of a node is its longest-path distance from a parentless node.
    - Within a rank, nodes keep the order they were supplied in.
    - The root gets the large box, every other node the small one.

    The engine holds scratch state while computing; it is rebuilt from
    scratch on every call so the result depends on the input alone.
    """

    def __init__(self, config: LayoutConfig | None = None, root_id: str = ROOT_NODE_ID):
        self.config = config or LayoutConfig()
        self.root_id = root_id
        self._ranks: dict[str, int] = {}
        self._columns: dict[int, list[str]] = {}

    def _reset(self) -> None:
        self._ranks = {}
        self._columns = {}

    def box_for(self, node_id: str) -> tuple[float, float]:
        if node_id == self.root_id:
            return self.config.main_node_width, self.config.main_node_height
        return self.config.question_node_width, self.config.question_node_height

    def _assign_ranks(self, node_ids: list[str], edges: Sequence[Edge]) -> None:
        """Longest-path ranking via Kahn's topological order."""
        known = set(node_ids)
        in_degree = {n_id: 0 for n_id in node_ids}
        adj: dict[str, list[str]] = {n_id: [] for n_id in node_ids}
        for edge in edges:
            if edge.source_node_id in known and edge.target_node_id in known:
                adj[edge.source_node_id].append(edge.target_node_id)
                in_degree[edge.target_node_id] += 1

        self._ranks = {n_id: 0 for n_id in node_ids}
        queue = [n_id for n_id in node_ids if in_degree[n_id] == 0]
        while queue:
            current = queue.pop(0)
            for child in adj[current]:
                self._ranks[child] = max(self._ranks[child], self._ranks[current] + 1)
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)

    def layout(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> dict[str, NodePosition]:
        """
        Compute the top-left position and box of every node.

        Args:
            nodes: Nodes in insertion order
            edges: Parent -> child edges; edges to unknown nodes are ignored

        Returns:
            Mapping of node id to NodePosition
        """
        self._reset()
        node_ids = list(dict.fromkeys(n.id for n in nodes))
        if not node_ids:
            return {}

        self._assign_ranks(node_ids, edges)
        for n_id in node_ids:
            self._columns.setdefault(self._ranks[n_id], []).append(n_id)

        cfg = self.config
        column_widths: dict[int, float] = {}
        column_heights: dict[int, float] = {}
        for rank, members in self._columns.items():
            boxes = [self.box_for(n_id) for n_id in members]
            column_widths[rank] = max(w for w, _ in boxes)
            column_heights[rank] = sum(h for _, h in boxes) + cfg.node_separation * (len(members) - 1)
        tallest = max(column_heights.values())

        positions: dict[str, NodePosition] = {}
        column_left = cfg.margin_x
        for rank in sorted(self._columns):
            center_x = column_left + column_widths[rank] / 2
            top = cfg.margin_y + (tallest - column_heights[rank]) / 2
            for n_id in self._columns[rank]:
                width, height = self.box_for(n_id)
                positions[n_id] = NodePosition(
                    x=center_x - width / 2,
                    y=top,
                    width=width,
                    height=height,
                )
                top += height + cfg.node_separation
            column_left += column_widths[rank] + cfg.rank_separation

        return positions

    def layout_snapshot(self, snapshot: GraphSnapshot) -> dict[str, NodePosition]:
        return self.layout(snapshot.nodes, snapshot.edges)


def compute_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: LayoutConfig | None = None,
    root_id: str = ROOT_NODE_ID,
) -> dict[str, NodePosition]:
    """Functional entry point: lay out one graph with a throwaway engine."""
    return LayoutEngine(config, root_id=root_id).layout(nodes, edges)
