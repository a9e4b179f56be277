"""Portable JSON snapshot format for exploration sessions."""
import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from domain.exceptions import ValidationError
from domain.models import (
    SESSION_FORMAT_VERSION,
    ConversationTurn,
    Edge,
    Node,
    Session,
)
from exploration.graph_store import tree_violations

BRANCH_ONLY_TYPE = "branch-only"
FILENAME_PREFIX = "rabbitholes"
MAX_FILENAME_TOKEN = 40

_UNSAFE_FILENAME_RUN = re.compile(r"[^a-z0-9一-龥]+", re.IGNORECASE)


class GraphImport(BaseModel):
    """A full graph payload, validated and ready to become the active graph."""

    query: str | None = None
    current_concept: str | None = None
    conversation_history: list[ConversationTurn] | None = None
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)


class BranchImport(BaseModel):
    """A reduced payload that only replaces the custom-question pool."""

    branch_questions: list[str] = Field(default_factory=list)


def suggest_filename(query: str, timestamp_ms: int) -> str:
    """Download name for an export: `rabbitholes_<query token>_<ms>.json`."""
    token = _UNSAFE_FILENAME_RUN.sub("_", query or FILENAME_PREFIX)[:MAX_FILENAME_TOKEN]
    return f"{FILENAME_PREFIX}_{token}_{timestamp_ms}.json"


def _normalize_node(raw: Any) -> Any:
    """Accept the flat format and the older `{type, data: {...}}` canvas format."""
    if not isinstance(raw, Mapping) or not isinstance(raw.get("data"), Mapping):
        return raw
    data = raw["data"]
    is_expanded = bool(data.get("isExpanded", False))
    kind = raw.get("kind")
    if kind is None:
        kind = "main" if raw.get("type") == "mainNode" or raw.get("id") == "main" else "question"
    return {
        "id": raw.get("id"),
        "kind": kind,
        "label": data.get("label", ""),
        "content": data.get("content") or "",
        "sources": data.get("sources") or [],
        "images": data.get("images") or [],
        "isExpanded": is_expanded,
        "isCustom": bool(data.get("isCustom", False)),
    }


def _normalize_edge(raw: Any) -> Any:
    if not isinstance(raw, Mapping) or "sourceNodeId" in raw or "source_node_id" in raw:
        return raw
    if "source" in raw and "target" in raw:
        return {
            "id": raw.get("id") or f"edge-{raw['target']}",
            "sourceNodeId": raw["source"],
            "targetNodeId": raw["target"],
        }
    return raw


def _describe(error: PydanticValidationError, where: str) -> list[str]:
    return [
        f"{where}.{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" if e["loc"] else f"{where}: {e['msg']}"
        for e in error.errors()
    ]


class SessionCodec:
    """
    Serializes sessions to the portable format and validates imports.

    Import is all-or-nothing: a payload either parses completely into a
    GraphImport/BranchImport, or a ValidationError is raised and the caller
    applies nothing.
    """

    def __init__(self, version: str = SESSION_FORMAT_VERSION):
        self.version = version

    # === Export ===

    def export_session(self, session: Session) -> dict[str, Any]:
        """Full graph payload: version, query, concept, history, nodes and edges."""
        data = session.to_json_dict()
        return {
            "version": self.version,
            "query": data["query"],
            "currentConcept": data["currentConcept"],
            "conversationHistory": data["conversationHistory"],
            "nodes": data["nodes"],
            "edges": data["edges"],
        }

    def export_branch_questions(self, branch_questions: Sequence[str]) -> dict[str, Any]:
        return {
            "version": self.version,
            "type": BRANCH_ONLY_TYPE,
            "branchQuestions": list(branch_questions),
        }

    def dumps(self, payload: Mapping[str, Any]) -> str:
        return json.dumps(payload, indent=2, ensure_ascii=False)

    # === Import ===

    def _load(self, raw: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
        if isinstance(raw, (str, bytes, bytearray)):
            try:
                raw = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise ValidationError("Payload is not valid JSON", [str(e)])
        if not isinstance(raw, Mapping):
            raise ValidationError("Payload must be a JSON object", [f"got {type(raw).__name__}"])
        return raw

    def _parse_branch_only(self, data: Mapping[str, Any]) -> BranchImport:
        questions = data["branchQuestions"]
        bad = [i for i, q in enumerate(questions) if not isinstance(q, str)]
        if bad:
            raise ValidationError(
                "Branch questions must be strings",
                [f"branchQuestions.{i}: not a string" for i in bad],
            )
        return BranchImport(branch_questions=list(questions))

    def _parse_graph(self, data: Mapping[str, Any]) -> GraphImport:
        nodes_raw = data.get("nodes")
        edges_raw = data.get("edges")
        if not isinstance(nodes_raw, list) or not isinstance(edges_raw, list):
            raise ValidationError(
                "Invalid session format: missing nodes or edges",
                [
                    f"{field}: expected an array"
                    for field, value in (("nodes", nodes_raw), ("edges", edges_raw))
                    if not isinstance(value, list)
                ],
            )

        errors: list[str] = []
        nodes: list[Node] = []
        for index, raw in enumerate(nodes_raw):
            try:
                nodes.append(Node.model_validate(_normalize_node(raw)))
            except PydanticValidationError as e:
                errors.extend(_describe(e, f"nodes.{index}"))
        edges: list[Edge] = []
        for index, raw in enumerate(edges_raw):
            try:
                edges.append(Edge.model_validate(_normalize_edge(raw)))
            except PydanticValidationError as e:
                errors.extend(_describe(e, f"edges.{index}"))

        history = None
        if data.get("conversationHistory") is not None:
            raw_history = data["conversationHistory"]
            if not isinstance(raw_history, list):
                errors.append("conversationHistory: expected an array")
            else:
                history = []
                for index, raw in enumerate(raw_history):
                    try:
                        history.append(ConversationTurn.model_validate(raw))
                    except PydanticValidationError as e:
                        errors.extend(_describe(e, f"conversationHistory.{index}"))

        for field in ("query", "currentConcept"):
            if data.get(field) is not None and not isinstance(data[field], str):
                errors.append(f"{field}: expected a string")

        if errors:
            raise ValidationError("Invalid session format", errors)

        seen: set[str] = set()
        for node in nodes:
            if node.id in seen:
                errors.append(f"duplicate node id '{node.id}'")
            seen.add(node.id)
        seen = set()
        for edge in edges:
            if edge.id in seen:
                errors.append(f"duplicate edge id '{edge.id}'")
            seen.add(edge.id)
        errors.extend(tree_violations(nodes, edges))
        if errors:
            raise ValidationError("Invalid session graph", errors)

        return GraphImport(
            query=data.get("query") or None,
            current_concept=data.get("currentConcept") or None,
            conversation_history=history,
            nodes=nodes,
            edges=edges,
        )

    def import_payload(self, raw: str | bytes | Mapping[str, Any]) -> GraphImport | BranchImport:
        """
        Validate an imported payload.

        Args:
            raw: JSON text or an already-decoded mapping

        Returns:
            BranchImport for `{type: "branch-only", branchQuestions: [...]}`,
            GraphImport for a full graph payload

        Raises:
            ValidationError: The payload matches neither shape
        """
        data = self._load(raw)
        if data.get("type") == BRANCH_ONLY_TYPE and isinstance(data.get("branchQuestions"), list):
            return self._parse_branch_only(data)
        return self._parse_graph(data)

    def load_session(self, raw: str | bytes | Mapping[str, Any]) -> Session:
        """Parse a stored history record."""
        data = self._load(raw)
        try:
            return Session.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError("Invalid stored session", _describe(e, "session"))
