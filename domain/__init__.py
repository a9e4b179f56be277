"""Domain layer - Core entities and exceptions of the exploration graph."""
from domain.exceptions import (
    ExplorationError,
    DuplicateIdError,
    NodeNotFoundError,
    InvalidStateError,
    ValidationError,
    ExpansionFailure,
    AdapterError,
)
from domain.models import (
    ROOT_NODE_ID,
    SourceRecord,
    ImageRecord,
    Node,
    Edge,
    ConversationTurn,
    QueryRequest,
    QueryResponse,
    ExpansionResult,
    ExpansionOutcome,
    NodePosition,
    GraphSnapshot,
    SessionState,
    Session,
)

__all__ = [
    "ExplorationError",
    "DuplicateIdError",
    "NodeNotFoundError",
    "InvalidStateError",
    "ValidationError",
    "ExpansionFailure",
    "AdapterError",
    "ROOT_NODE_ID",
    "SourceRecord",
    "ImageRecord",
    "Node",
    "Edge",
    "ConversationTurn",
    "QueryRequest",
    "QueryResponse",
    "ExpansionResult",
    "ExpansionOutcome",
    "NodePosition",
    "GraphSnapshot",
    "SessionState",
    "Session",
]
