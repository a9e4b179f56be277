"""Expansion lifecycle: question node -> answered node, single-flight and cancellable."""
import asyncio
import itertools
import logging
from collections.abc import Callable, Sequence
from typing import Literal
from uuid import uuid4

from domain.exceptions import ExpansionFailure
from domain.models import (
    Edge,
    ExpansionOutcome,
    ExpansionResult,
    FollowUpMode,
    Node,
    QueryRequest,
    QueryResponse,
    SessionState,
    ConversationTurn,
)
from exploration.follow_up import FollowUpExtractor
from exploration.graph_store import GraphChange, GraphStore, edge_id_for
from ports.query import QueryServicePort

logger = logging.getLogger(__name__)

NodeState = Literal["idle", "pending", "expanded"]
ErrorListener = Callable[[ExpansionFailure], None]


def new_question_id(custom: bool = False) -> str:
    prefix = "question-custom" if custom else "question"
    return f"{prefix}-{uuid4().hex[:12]}"


class ExpansionController:
    """
    Drives the expansion of one node at a time.

    Single-flight: `active_node_id` is the only in-flight expansion in the
    whole graph; a second request is rejected before any network call.

    Stale results: each request gets a token from a generation counter,
    stored per node id. Cancelling (or deleting the node) drops the token;
    a response that arrives with a token that no longer matches is
    discarded without touching the graph.

    Nothing is written to the graph while a request is pending, so a
    failed expansion leaves the node exactly as it was.

    `last_expanded_id` follows completion order, not graph order: it is the
    node whose answer feeds the next conversation turn, and is forgotten
    when that node is deleted or the graph is replaced.
    """

    def __init__(
        self,
        store: GraphStore,
        state: SessionState,
        query_service: QueryServicePort,
        follow_up_mode: FollowUpMode = "expansive",
        extractor: Callable[[str], object] | None = None,
    ):
        """
        Initialize the controller.

        Args:
            store: The graph store results are applied to
            state: Session metadata (conversation history, concept)
            query_service: Port used to answer questions
            follow_up_mode: Sent with every request
            extractor: Follow-up extractor used when the service sends none
        """
        self.store = store
        self.state = state
        self.query_service = query_service
        self.follow_up_mode = follow_up_mode
        self.extractor = extractor or FollowUpExtractor()

        self.active_node_id: str | None = None
        self.last_expanded_id: str | None = None
        self._tokens: dict[str, int] = {}
        self._generation = itertools.count(1)
        self._error_listeners: list[ErrorListener] = []

        store.subscribe(self._on_graph_change)

    # === Listeners ===

    def on_error(self, listener: ErrorListener) -> None:
        """Register a callback for expansion failures."""
        self._error_listeners.append(listener)

    def _emit_error(self, failure: ExpansionFailure) -> None:
        for listener in list(self._error_listeners):
            listener(failure)

    def _on_graph_change(self, change: GraphChange) -> None:
        if change.kind in ("remove_subtree", "replace"):
            for node_id in change.node_ids:
                if node_id in self._tokens or node_id == self.active_node_id:
                    self.cancel(node_id)
            if change.kind == "replace" or self.last_expanded_id in change.node_ids:
                self.last_expanded_id = None

    # === State ===

    @property
    def is_busy(self) -> bool:
        return self.active_node_id is not None

    def state_of(self, node_id: str) -> NodeState:
        if node_id == self.active_node_id:
            return "pending"
        if self.store.has_node(node_id) and self.store.get_node(node_id).is_expanded:
            return "expanded"
        return "idle"

    def can_expand(self, node: Node) -> bool:
        """Questions and the not-yet-answered root are expandable, once."""
        if node.is_expanded:
            return False
        return node.kind == "question" or node.id == self.store.root_id

    # === Tokens ===

    def _issue_token(self, node_id: str) -> int:
        previous = self._tokens.get(node_id)
        if previous is not None:
            logger.debug("Superseding token %s for node '%s'", previous, node_id)
        token = next(self._generation)
        self._tokens[node_id] = token
        return token

    def _is_current(self, node_id: str, token: int) -> bool:
        return self._tokens.get(node_id) == token

    def _release(self, node_id: str, token: int) -> None:
        if self._is_current(node_id, token):
            del self._tokens[node_id]
            if self.active_node_id == node_id:
                self.active_node_id = None

    def cancel(self, node_id: str) -> bool:
        """
        Cancel the in-flight expansion of a node, if any.

        Returns:
            True if a request was cancelled
        """
        cancelled = self._tokens.pop(node_id, None) is not None
        if self.active_node_id == node_id:
            self.active_node_id = None
            cancelled = True
        if cancelled:
            logger.info("Cancelled expansion of node '%s'", node_id)
        return cancelled

    def cancel_all(self) -> None:
        for node_id in list(self._tokens):
            self.cancel(node_id)
        self.active_node_id = None

    # === Expansion ===

    def _build_request(self, node: Node) -> QueryRequest:
        return QueryRequest(
            query=node.label,
            previous_conversation=[t.model_copy() for t in self.state.conversation_history],
            concept=self.state.current_concept or None,
            follow_up_mode=self.follow_up_mode,
        )

    def _resolve_follow_ups(self, response: QueryResponse) -> tuple[str, list[str]]:
        """
        The service's own follow-up list wins when it is non-empty.
        Otherwise the questions are parsed out of the answer text.
        """
        questions = [q.strip() for q in response.follow_up_questions if q and q.strip()]
        if questions:
            return response.response, questions
        extraction = self.extractor(response.response)
        return extraction.main_text, list(extraction.follow_up_questions)

    def build_result(
        self,
        node: Node,
        response: QueryResponse,
        extra_custom_questions: Sequence[str] = (),
    ) -> ExpansionResult:
        """Map a service response onto the graph records for one node."""
        content, questions = self._resolve_follow_ups(response)

        children: list[Node] = [
            Node(id=new_question_id(), kind="question", label=q) for q in questions
        ]
        for question in extra_custom_questions:
            if question in questions:
                continue
            children.append(
                Node(id=new_question_id(custom=True), kind="question", label=question, is_custom=True)
            )

        return ExpansionResult(
            label=response.contextual_query or node.label,
            content=content,
            sources=response.sources,
            images=response.images,
            new_question_nodes=children,
            new_edges=[
                Edge(id=edge_id_for(child.id), source_node_id=node.id, target_node_id=child.id)
                for child in children
            ],
        )

    def last_expanded_node(self) -> Node | None:
        """The node whose expansion completed most recently, if it is still in the graph."""
        if self.last_expanded_id is None or not self.store.has_node(self.last_expanded_id):
            return None
        return self.store.get_node(self.last_expanded_id)

    def _previous_turn(self) -> ConversationTurn | None:
        # The turn describes the node answered last, not the one being applied now.
        last = self.last_expanded_node()
        if last is None:
            return None
        return ConversationTurn(user=last.label, assistant=last.content)

    async def expand(
        self,
        node_id: str,
        extra_custom_questions: Sequence[str] = (),
    ) -> ExpansionOutcome:
        """
        Expand one node through the query service.

        Args:
            node_id: Node to expand
            extra_custom_questions: User-authored questions attached as custom children

        Returns:
            ExpansionOutcome: expanded, rejected, failed or cancelled
        """
        node = self.store.get_node(node_id)

        if self.active_node_id is not None:
            logger.info(
                "Rejecting expansion of '%s': '%s' is still pending", node_id, self.active_node_id
            )
            return ExpansionOutcome(
                node_id=node_id,
                status="rejected",
                reason=f"expansion of '{self.active_node_id}' in progress",
            )
        if not self.can_expand(node):
            logger.debug("Rejecting expansion of '%s': not expandable", node_id)
            return ExpansionOutcome(node_id=node_id, status="rejected", reason="node is not expandable")

        token = self._issue_token(node_id)
        self.active_node_id = node_id
        request = self._build_request(node)
        logger.info("Expanding node '%s': %s", node_id, node.label[:80])

        try:
            response = await self.query_service.search(request)
        except asyncio.CancelledError:
            self._release(node_id, token)
            raise
        except Exception as e:
            if not self._is_current(node_id, token):
                logger.debug("Dropping failure of superseded request for '%s'", node_id)
                return ExpansionOutcome(node_id=node_id, status="cancelled")
            self._release(node_id, token)
            failure = ExpansionFailure(node_id, e)
            logger.warning("%s", failure.message)
            self._emit_error(failure)
            return ExpansionOutcome(node_id=node_id, status="failed", reason=str(e))

        if not self._is_current(node_id, token):
            logger.info("Discarding stale response for node '%s'", node_id)
            return ExpansionOutcome(node_id=node_id, status="cancelled")
        self._release(node_id, token)

        result = self.build_result(node, response, extra_custom_questions)
        turn = self._previous_turn()
        self.store.apply_expansion_result(node_id, result)
        if turn is not None:
            self.state.conversation_history.append(turn)
        self.last_expanded_id = node_id
        logger.info(
            "Expanded node '%s' with %d follow-up question(s)", node_id, len(result.new_question_nodes)
        )
        return ExpansionOutcome(node_id=node_id, status="expanded")
