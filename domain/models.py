"""Core domain entities and value objects."""
import time
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ROOT_NODE_ID = "main"
SESSION_FORMAT_VERSION = "1.0"
UNTITLED_QUERY = "Untitled Journey"

NodeKind = Literal["main", "question"]
FollowUpMode = Literal["expansive", "focused"]


def now_millis() -> int:
    """Epoch timestamp in milliseconds, the unit sessions are stamped with."""
    return int(time.time() * 1000)


class CamelModel(BaseModel):
    """Base for records that travel as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceRecord(CamelModel):
    """A web source backing an answer."""

    title: str = Field(default="", description="Page/article title")
    url: str = Field(default="", description="Source URL")
    author: str = Field(default="", description="Author, if the search provider knows it")
    image: str = Field(default="", description="Preview image URL")

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class ImageRecord(CamelModel):
    """An image attached to an answer."""

    url: str = Field(..., description="Full-size image URL")
    thumbnail: str = Field(default="", description="Thumbnail URL")
    description: str = Field(default="", description="Caption from the search provider")

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_url(cls, data):
        # Older exports stored images as plain URL strings.
        if isinstance(data, str):
            return {"url": data, "thumbnail": data}
        return data

    @field_validator("thumbnail", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class Node(CamelModel):
    """
    A vertex of the exploration graph.

    `question` nodes are unexpanded prompts; `main` nodes carry an answer.
    """

    id: str = Field(..., description="Unique identifier within a graph")
    kind: NodeKind = Field(default="question")
    label: str = Field(default="", description="Question text or contextualized query")
    content: str = Field(default="", description="Answer body, empty until expanded")
    sources: list[SourceRecord] = Field(default_factory=list)
    images: list[ImageRecord] = Field(default_factory=list)
    is_expanded: bool = Field(default=False)
    is_custom: bool = Field(default=False, description="True if user-authored")


class Edge(CamelModel):
    """A directed parent -> child link."""

    id: str = Field(..., description="Unique identifier within a graph")
    source_node_id: str = Field(..., description="ID of the parent node")
    target_node_id: str = Field(..., description="ID of the child node")


class ConversationTurn(CamelModel):
    """One exchange of the running conversation sent with every query."""

    user: str | None = None
    assistant: str | None = None


class QueryRequest(CamelModel):
    """Request sent to the query service for one expansion."""

    query: str
    previous_conversation: list[ConversationTurn] = Field(default_factory=list)
    concept: str | None = None
    follow_up_mode: FollowUpMode = "expansive"


class QueryResponse(CamelModel):
    """Answer returned by the query service."""

    response: str = ""
    follow_up_questions: list[str] = Field(default_factory=list)
    contextual_query: str = ""
    sources: list[SourceRecord] = Field(default_factory=list)
    images: list[ImageRecord] = Field(default_factory=list)

    @field_validator("response", "contextual_query", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("follow_up_questions", "sources", "images", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value


class ExpansionResult(BaseModel):
    """Everything written to the graph when one node finishes expanding."""

    label: str
    content: str
    sources: list[SourceRecord] = Field(default_factory=list)
    images: list[ImageRecord] = Field(default_factory=list)
    new_question_nodes: list[Node] = Field(default_factory=list)
    new_edges: list[Edge] = Field(default_factory=list)


class ExpansionOutcome(BaseModel):
    """What happened to an expansion request."""

    node_id: str
    status: Literal["expanded", "rejected", "failed", "cancelled"]
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == "expanded"


class FollowUpExtraction(BaseModel):
    """Answer text split into its body and its follow-up questions."""

    main_text: str
    follow_up_questions: list[str] = Field(default_factory=list, max_length=3)


class NodePosition(BaseModel):
    """Top-left corner and box size of a laid-out node."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float


class GraphSnapshot(BaseModel):
    """Read-only copy of the node/edge collection."""

    model_config = ConfigDict(frozen=True)

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]


class SessionState(BaseModel):
    """Mutable session metadata that lives beside the graph."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    query: str = ""
    current_concept: str = ""
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    branch_questions: list[str] = Field(default_factory=list)


class Session(CamelModel):
    """
    A persisted exploration session.
    The aggregate saved to and loaded from the history store.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: int = Field(default_factory=now_millis, description="Epoch milliseconds")
    query: str = ""
    current_concept: str = ""
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    branch_questions: list[str] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class WebSearchResult(BaseModel):
    """Normalized output of a web search used to ground an answer."""

    sources: list[SourceRecord] = Field(default_factory=list)
    images: list[ImageRecord] = Field(default_factory=list)
    raw: dict = Field(default_factory=dict, description="Provider payload, passed to the LLM as context")
