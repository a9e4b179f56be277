"""Tests for the external-service adapters."""
import json

import httpx
import pytest

from adapters.direct_query_adapter import DirectQueryServiceAdapter, build_user_prompt
from adapters.http_history_store import HttpHistoryStore
from adapters.http_query_adapter import HttpQueryServiceAdapter
from adapters.local_storage import LocalHistoryStore
from adapters.mock_adapters import MockLLMAdapter, MockQueryServiceAdapter, MockSearchAdapter
from adapters.openai_compatible_adapter import OpenAICompatibleAdapter
from adapters.tavily_adapter import TavilySearchAdapter, parse_key_pool, preview_key
from domain.exceptions import AdapterError
from domain.models import ConversationTurn, Node, QueryRequest, Session


# === Hosted query service ===

@pytest.mark.asyncio
async def test_http_query_adapter_posts_camel_case():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "response": "Answer",
                "followUpQuestions": ["Next?"],
                "contextualQuery": "Q in context",
                "sources": [{"title": "T", "url": "https://example.com", "author": None}],
                "images": [{"url": "https://example.com/i.png", "thumbnail": None}],
            },
        )

    adapter = HttpQueryServiceAdapter("http://service/api/", transport=httpx.MockTransport(handler))
    request = QueryRequest(
        query="Q",
        previous_conversation=[ConversationTurn(user="u", assistant="a")],
        follow_up_mode="focused",
    )

    response = await adapter.search(request)

    assert seen["path"] == "/api/rabbitholes/search"
    assert seen["body"] == {
        "query": "Q",
        "previousConversation": [{"user": "u", "assistant": "a"}],
        "followUpMode": "focused",
    }
    assert response.follow_up_questions == ["Next?"]
    assert response.contextual_query == "Q in context"
    assert response.sources[0].author == ""
    assert response.images[0].thumbnail == ""


@pytest.mark.asyncio
async def test_http_query_adapter_wraps_http_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
    adapter = HttpQueryServiceAdapter("http://service/api", transport=transport)

    with pytest.raises(AdapterError) as exc_info:
        await adapter.search(QueryRequest(query="Q"))
    assert exc_info.value.context["adapter"] == "HttpQueryServiceAdapter"


# === History stores ===

@pytest.mark.asyncio
async def test_http_history_store_routes():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path, request.headers.get("authorization")))
        if request.method == "GET":
            return httpx.Response(200, json=[
                {"id": "old", "timestamp": 1, "query": "Old"},
                {"id": "new", "timestamp": 2, "query": "New"},
            ])
        if request.method == "DELETE" and request.url.path.endswith("/gone"):
            return httpx.Response(404)
        if request.method == "PUT":
            assert json.loads(request.content) == {"newName": "Renamed"}
        return httpx.Response(200, json={})

    store = HttpHistoryStore("http://host/api", token="t0k", transport=httpx.MockTransport(handler))

    sessions = await store.list_sessions()
    assert [s.id for s in sessions] == ["new", "old"]
    assert await store.save(Session(id="s1", query="Q")) == "s1"
    assert await store.delete("s1") is True
    assert await store.delete("gone") is False
    assert await store.rename("s1", "Renamed") is True

    assert [c[:2] for c in calls] == [
        ("GET", "/api/history"),
        ("POST", "/api/history"),
        ("DELETE", "/api/history/s1"),
        ("DELETE", "/api/history/gone"),
        ("PUT", "/api/history/s1"),
    ]
    assert all(c[2] == "Bearer t0k" for c in calls)


@pytest.mark.asyncio
async def test_local_history_store(tmp_path):
    store = LocalHistoryStore(base_path=str(tmp_path))
    older = Session(id="a", timestamp=1, query="First", nodes=[Node(id="main", kind="main")])
    newer = Session(id="b", timestamp=2, query="Second")

    await store.save(older)
    await store.save(newer)
    (tmp_path / "junk.json").write_text("{not json", encoding="utf-8")

    sessions = await store.list_sessions()
    assert [s.id for s in sessions] == ["b", "a"]
    assert sessions[1].nodes[0].kind == "main"

    assert await store.rename("a", "Renamed") is True
    assert await store.rename("missing", "x") is False
    assert await store.delete("b") is True
    assert await store.delete("b") is False

    sessions = await store.list_sessions()
    assert [(s.id, s.query) for s in sessions] == [("a", "Renamed")]


@pytest.mark.asyncio
async def test_local_history_store_failed_rename_keeps_file(tmp_path, monkeypatch):
    store = LocalHistoryStore(base_path=str(tmp_path))
    await store.save(Session(id="a", timestamp=1, query="Original"))

    def torn_dump(data, f, **kwargs):
        f.write('{"id": "a", "que')
        raise OSError("disk full")

    monkeypatch.setattr("adapters.local_storage.json.dump", torn_dump)
    with pytest.raises(AdapterError):
        await store.rename("a", "Renamed")
    monkeypatch.undo()

    sessions = await store.list_sessions()
    assert [(s.id, s.query) for s in sessions] == [("a", "Original")]
    assert list(tmp_path.glob("*.tmp")) == []


@pytest.mark.asyncio
async def test_local_history_store_rejects_unsafe_ids(tmp_path):
    store = LocalHistoryStore(base_path=str(tmp_path))
    with pytest.raises(AdapterError):
        await store.save(Session(id="../escape"))


# === LLM ===

@pytest.mark.asyncio
async def test_openai_compatible_adapter_sends_chat_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Hello  "}}]})

    llm = OpenAICompatibleAdapter(
        api_key="sk-test",
        model_name="test-model",
        base_url="https://llm.example.com",
        transport=httpx.MockTransport(handler),
    )

    answer = await llm.generate("Hi", system_prompt="Be brief", temperature=0.1)

    assert answer == "Hello"
    assert seen["url"] == "https://llm.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["messages"] == [
        {"role": "system", "content": "Be brief"},
        {"role": "user", "content": "Hi"},
    ]
    assert seen["body"]["temperature"] == 0.1


@pytest.mark.asyncio
async def test_openai_compatible_adapter_wraps_errors():
    llm = OpenAICompatibleAdapter(
        api_key="sk-test",
        model_name="m",
        transport=httpx.MockTransport(lambda request: httpx.Response(401)),
    )
    with pytest.raises(AdapterError):
        await llm.generate("Hi")


def test_openai_compatible_adapter_requires_key():
    with pytest.raises(ValueError):
        OpenAICompatibleAdapter(api_key="", model_name="m")


# === Search ===

def test_tavily_normalize_handles_both_image_shapes():
    result = TavilySearchAdapter.normalize({
        "results": [{"title": "T", "url": "https://example.com", "author": None}],
        "images": ["https://example.com/a.png", {"url": "https://example.com/b.png", "description": "B"}],
    })

    assert result.sources[0].title == "T"
    assert [i.url for i in result.images] == ["https://example.com/a.png", "https://example.com/b.png"]
    assert result.images[1].description == "B"
    assert result.raw["results"][0]["title"] == "T"


def test_key_pool_helpers():
    assert parse_key_pool(" a, ,b ,") == ["a", "b"]
    assert preview_key("tvly-1234567890") == "tvly...7890"
    assert preview_key("short") == "****"


# === Direct query service ===

@pytest.mark.asyncio
async def test_direct_query_service_splits_answer():
    llm = MockLLMAdapter(answer="#### Background\nBody.\n\n#### Follow-up Questions\n1. Deeper?\n2. Wider?")
    searcher = MockSearchAdapter()
    service = DirectQueryServiceAdapter(llm, searcher)

    response = await service.search(QueryRequest(query="Topic", concept="Concept"))

    assert response.response == "#### Background\nBody."
    assert response.follow_up_questions == ["Deeper?", "Wider?"]
    assert response.contextual_query == "Topic"
    assert response.sources[0].title == "Mock result for Topic"
    assert searcher.queries == ["Topic"]
    prompt, system_prompt = llm.prompts[0]
    assert "comprehensive response about Concept" in prompt
    assert "Follow-up Questions" in system_prompt


def test_build_user_prompt_includes_history_and_mode():
    request = QueryRequest(
        query="Q",
        previous_conversation=[ConversationTurn(user="earlier", assistant="reply")],
        follow_up_mode="focused",
    )
    prompt = build_user_prompt(request, {"results": []})
    assert "User: earlier" in prompt
    assert "Assistant: reply" in prompt
    assert "focused and specific" in prompt


# === Mock query service ===

@pytest.mark.asyncio
async def test_mock_query_service_failure_and_text_mode():
    service = MockQueryServiceAdapter(fail_queries={"bad"}, follow_ups_in_text=True)

    with pytest.raises(AdapterError):
        await service.search(QueryRequest(query="bad"))

    response = await service.search(QueryRequest(query="good"))
    assert response.follow_up_questions == []
    assert "Follow-up Questions" in response.response
    assert len(service.requests) == 2
