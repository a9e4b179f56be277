"""Session facade: one graph, one controller, one layout, one history entry."""
import logging
from collections.abc import Callable, Mapping
from typing import Any
from uuid import uuid4

from domain.models import (
    ROOT_NODE_ID,
    ExpansionOutcome,
    FollowUpMode,
    Node,
    NodePosition,
    Session,
    SessionState,
    now_millis,
)
from exploration.autosave import DebouncedSessionSaver
from exploration.expansion import ErrorListener, ExpansionController, new_question_id
from exploration.graph_store import GraphChange, GraphStore
from exploration.layout import LayoutConfig, LayoutEngine
from exploration.session_codec import BranchImport, GraphImport, SessionCodec, suggest_filename
from ports.history import HistoryStorePort
from ports.query import QueryServicePort

logger = logging.getLogger(__name__)


class Explorer:
    """
    Entry point for a host UI.

    Owns the session metadata, the GraphStore and everything derived from
    it. Every store change triggers a full layout recompute and a
    debounced save; there are no other copies of the graph.
    """

    def __init__(
        self,
        query_service: QueryServicePort,
        history: HistoryStorePort | None = None,
        layout_config: LayoutConfig | None = None,
        follow_up_mode: FollowUpMode = "expansive",
        autosave_delay_seconds: float = 1.0,
        state: SessionState | None = None,
    ):
        self.state = state or SessionState()
        self.store = GraphStore()
        self.codec = SessionCodec()
        self.layout_engine = LayoutEngine(layout_config)
        self.controller = ExpansionController(
            self.store,
            self.state,
            query_service,
            follow_up_mode=follow_up_mode,
        )
        self.history = history
        self.saver = DebouncedSessionSaver(history, autosave_delay_seconds) if history else None
        self.positions: dict[str, NodePosition] = {}
        self._emptied_listeners: list[Callable[[], None]] = []

        self.store.subscribe(self._on_graph_change)

    # === Change propagation ===

    def _on_graph_change(self, change: GraphChange) -> None:
        self.relayout()
        if change.graph_emptied:
            for listener in list(self._emptied_listeners):
                listener()
        self._touch()

    def _touch(self) -> None:
        if self.saver is not None:
            self.saver.schedule(self.to_session)

    def relayout(self) -> dict[str, NodePosition]:
        self.layout_engine.root_id = self.store.root_id
        self.positions = self.layout_engine.layout_snapshot(self.store.snapshot())
        return self.positions

    def on_error(self, listener: ErrorListener) -> None:
        """Called with an ExpansionFailure whenever the query service fails."""
        self.controller.on_error(listener)

    def on_graph_emptied(self, listener: Callable[[], None]) -> None:
        """Called when a deletion or reset leaves no root node."""
        self._emptied_listeners.append(listener)

    # === Exploration ===

    async def start(self, query: str, concept: str | None = None) -> ExpansionOutcome:
        """
        Begin a new exploration from a free-text question.

        The graph is replaced by a single unanswered root which is then
        expanded; custom questions from the branch pool become extra children.
        """
        query = (query or "").strip()
        if not query:
            return ExpansionOutcome(node_id=ROOT_NODE_ID, status="rejected", reason="empty query")
        if self.controller.is_busy:
            return ExpansionOutcome(
                node_id=ROOT_NODE_ID,
                status="rejected",
                reason=f"expansion of '{self.controller.active_node_id}' in progress",
            )

        self.state.query = query
        if concept is not None:
            self.state.current_concept = concept
        self.store.replace([Node(id=ROOT_NODE_ID, kind="main", label=query)], [])

        outcome = await self.controller.expand(
            ROOT_NODE_ID,
            extra_custom_questions=list(self.state.branch_questions),
        )
        if outcome.status == "failed" and self.store.has_node(ROOT_NODE_ID):
            self.store.clear()
        return outcome

    async def expand(self, node_id: str) -> ExpansionOutcome:
        return await self.controller.expand(node_id)

    def _infer_source_node(self) -> str:
        last = self.controller.last_expanded_node()
        if last is not None:
            return last.id
        return self.store.first_node_id() or ROOT_NODE_ID

    def add_custom_follow_up(self, question: str, source_node_id: str | None = None) -> Node:
        """
        Attach a user-written question without asking the query service.
        Allowed even while an expansion is pending.
        """
        question = (question or "").strip()
        if not question:
            raise ValueError("Follow-up question must not be empty")
        source = source_node_id or self._infer_source_node()
        node = Node(id=new_question_id(custom=True), kind="question", label=question, is_custom=True)
        self.store.add_child(source, node)
        logger.info("Added custom follow-up under '%s'", source)
        return node

    def delete_node(self, node_id: str) -> set[str]:
        """Delete a node and its whole subtree, cancelling any expansion inside it."""
        return self.store.remove_subtree(node_id)

    # === Branch question pool ===

    def add_branch_question(self, question: str) -> None:
        question = (question or "").strip()
        if not question:
            raise ValueError("Branch question must not be empty")
        self.state.branch_questions.append(question)
        self._touch()

    def remove_branch_question(self, index: int) -> str:
        if not 0 <= index < len(self.state.branch_questions):
            raise ValueError(
                f"No branch question at index {index} (pool has {len(self.state.branch_questions)})"
            )
        removed = self.state.branch_questions.pop(index)
        self._touch()
        return removed

    # === Import / export ===

    def to_session(self) -> Session:
        snapshot = self.store.snapshot()
        return Session(
            id=self.state.id,
            timestamp=now_millis(),
            query=self.state.query,
            current_concept=self.state.current_concept,
            conversation_history=[t.model_copy() for t in self.state.conversation_history],
            nodes=list(snapshot.nodes),
            edges=list(snapshot.edges),
            branch_questions=list(self.state.branch_questions),
        )

    def export_session(self) -> dict[str, Any]:
        return self.codec.export_session(self.to_session())

    def export_branch_questions(self) -> dict[str, Any]:
        return self.codec.export_branch_questions(self.state.branch_questions)

    def export_filename(self) -> str:
        return suggest_filename(self.state.query, now_millis())

    def import_payload(self, raw: str | bytes | Mapping[str, Any]) -> GraphImport | BranchImport:
        """
        Apply an imported file. Validation happens before anything changes:
        on ValidationError the session is exactly as it was.
        """
        result = self.codec.import_payload(raw)
        if isinstance(result, BranchImport):
            self.state.branch_questions = list(result.branch_questions)
            logger.info("Imported %d branch question(s)", len(result.branch_questions))
            self._touch()
            return result

        self.store.replace(result.nodes, result.edges)
        if result.query is not None:
            self.state.query = result.query
        if result.current_concept is not None:
            self.state.current_concept = result.current_concept
        if result.conversation_history is not None:
            self.state.conversation_history = list(result.conversation_history)
        logger.info("Imported graph with %d node(s)", len(result.nodes))
        self._touch()
        return result

    def load_session(self, session: Session) -> None:
        """Make a stored session the active one."""
        self.store.replace(session.nodes, session.edges)
        self.state.id = session.id
        self.state.query = session.query
        self.state.current_concept = session.current_concept
        self.state.conversation_history = [t.model_copy() for t in session.conversation_history]
        self.state.branch_questions = list(session.branch_questions)

    def reset(self) -> None:
        """Start a blank session with a fresh id."""
        self.controller.cancel_all()
        self.store.clear()
        self.state.id = str(uuid4())
        self.state.query = ""
        self.state.current_concept = ""
        self.state.conversation_history = []
        self.state.branch_questions = []

    def rename(self, new_query: str) -> None:
        """Rename the active session; the root node shows the session name."""
        new_query = (new_query or "").strip()
        if not new_query:
            raise ValueError("Session name must not be empty")
        self.state.query = new_query
        if self.store.has_root():
            self.store.relabel(self.store.root_id, new_query)
        else:
            self._touch()

    # === History ===

    async def list_sessions(self) -> list[Session]:
        if self.history is None:
            return []
        return await self.history.list_sessions()

    async def delete_session(self, session_id: str) -> bool:
        if self.history is None:
            return False
        return await self.history.delete(session_id)

    async def rename_session(self, session_id: str, new_query: str) -> bool:
        if session_id == self.state.id:
            self.rename(new_query)
        if self.history is None:
            return False
        return await self.history.rename(session_id, new_query.strip())

    async def flush(self) -> bool:
        """Write the session to history now instead of waiting for the debounce."""
        if self.saver is None:
            return False
        return await self.saver.flush()

    async def aclose(self) -> None:
        self.controller.cancel_all()
        if self.saver is not None:
            await self.saver.aclose()
