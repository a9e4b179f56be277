"""Tests for debounced session persistence."""
import asyncio
import logging

import pytest

from adapters.mock_adapters import InMemoryHistoryStore
from domain.models import Node, Session
from exploration.autosave import DebouncedSessionSaver


class FailingHistoryStore(InMemoryHistoryStore):
    async def save(self, session: Session) -> str:
        raise OSError("disk full")


def _session(query: str = "Topic", nodes: int = 1) -> Session:
    return Session(id="s1", query=query, nodes=[Node(id=f"n{i}") for i in range(nodes)])


@pytest.mark.asyncio
async def test_burst_of_changes_saves_once(history):
    saver = DebouncedSessionSaver(history, delay_seconds=0.02)
    built = []

    def factory():
        session = _session(nodes=len(built) + 1)
        built.append(session)
        return session

    for _ in range(5):
        saver.schedule(factory)
    await asyncio.sleep(0.1)

    assert history.save_count == 1
    assert len(built) == 1
    assert not saver.dirty


@pytest.mark.asyncio
async def test_latest_state_is_saved(history):
    saver = DebouncedSessionSaver(history, delay_seconds=0.02)
    saver.schedule(lambda: _session("old"))
    saver.schedule(lambda: _session("new"))
    await asyncio.sleep(0.1)

    sessions = await history.list_sessions()
    assert [s.query for s in sessions] == ["new"]


@pytest.mark.asyncio
async def test_empty_query_saved_as_untitled(history):
    saver = DebouncedSessionSaver(history, delay_seconds=10)
    saver.schedule(lambda: _session(""))

    assert await saver.flush()

    sessions = await history.list_sessions()
    assert sessions[0].query == "Untitled Journey"


@pytest.mark.asyncio
async def test_blank_session_is_not_saved(history):
    saver = DebouncedSessionSaver(history, delay_seconds=10)
    saver.schedule(lambda: _session(nodes=0))

    assert await saver.flush() is False
    assert history.save_count == 0


@pytest.mark.asyncio
async def test_save_failure_is_logged_and_swallowed(caplog):
    saver = DebouncedSessionSaver(FailingHistoryStore(), delay_seconds=10)
    saver.schedule(lambda: _session())

    with caplog.at_level(logging.ERROR, logger="exploration.autosave"):
        assert await saver.flush() is False

    assert isinstance(saver.last_error, OSError)
    assert saver.dirty
    assert "disk full" in caplog.text


@pytest.mark.asyncio
async def test_flush_without_changes_is_noop(history):
    saver = DebouncedSessionSaver(history)
    assert await saver.flush() is False
    assert history.save_count == 0


@pytest.mark.asyncio
async def test_aclose_cancels_pending_save(history):
    saver = DebouncedSessionSaver(history, delay_seconds=0.05)
    saver.schedule(lambda: _session())

    await saver.aclose()
    await asyncio.sleep(0.1)

    assert history.save_count == 0
    assert saver.dirty


def test_schedule_without_loop_marks_dirty(history):
    saver = DebouncedSessionSaver(history)
    saver.schedule(lambda: _session())
    assert saver.dirty
