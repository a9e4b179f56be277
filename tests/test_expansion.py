"""Tests for the expansion controller."""
import asyncio

import pytest

from domain.exceptions import AdapterError, ExpansionFailure, InvalidStateError
from domain.models import ConversationTurn, Node, QueryResponse
from exploration.expansion import ExpansionController, new_question_id
from tests.conftest import reply


@pytest.fixture
def controller(rooted_store, state, gated_service) -> ExpansionController:
    return ExpansionController(rooted_store, state, gated_service)


async def _start(controller, gated_service, node_id, **kwargs):
    task = asyncio.create_task(controller.expand(node_id, **kwargs))
    await gated_service.wait_for_call()
    return task


def test_new_question_id():
    assert new_question_id().startswith("question-")
    assert new_question_id(custom=True).startswith("question-custom-")
    assert new_question_id() != new_question_id()


@pytest.mark.asyncio
async def test_expand_question_node(controller, gated_service, rooted_store):
    task = await _start(controller, gated_service, "q3")
    assert controller.state_of("q3") == "pending"

    gated_service.answer("Third?", reply("Third answer.", contextual_query="Third, in context?"))
    outcome = await task

    assert outcome.succeeded
    node = rooted_store.get_node("q3")
    assert node.kind == "main"
    assert node.is_expanded
    assert node.content == "Third answer."
    assert node.label == "Third, in context?"
    children = [rooted_store.get_node(c) for c in rooted_store.children_of("q3")]
    assert [c.label for c in children] == ["Why?", "How?"]
    assert not any(c.is_custom for c in children)
    assert controller.state_of("q3") == "expanded"
    assert not controller.is_busy
    assert rooted_store.check_tree() == []


@pytest.mark.asyncio
async def test_label_kept_without_contextual_query(controller, gated_service, rooted_store):
    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", reply())
    await task
    assert rooted_store.get_node("q3").label == "Third?"


@pytest.mark.asyncio
async def test_second_expansion_rejected_while_pending(controller, gated_service):
    task = await _start(controller, gated_service, "q3")

    outcome = await controller.expand("q2")

    assert outcome.status == "rejected"
    assert len(gated_service.requests) == 1
    gated_service.answer("Third?", reply())
    assert (await task).succeeded


@pytest.mark.asyncio
async def test_expanded_node_is_not_expandable(controller):
    outcome = await controller.expand("main")
    assert outcome.status == "rejected"


@pytest.mark.asyncio
async def test_unexpanded_root_is_expandable(store, state, gated_service):
    store.add_node(Node(id="main", kind="main", label="Start"))
    controller = ExpansionController(store, state, gated_service)

    task = await _start(controller, gated_service, "main")
    gated_service.answer("Start", reply("Root answer."))
    outcome = await task

    assert outcome.succeeded
    assert len(store.children_of("main")) == 2


@pytest.mark.asyncio
async def test_response_for_deleted_node_is_discarded(controller, gated_service, rooted_store):
    task = await _start(controller, gated_service, "q2")

    rooted_store.remove_subtree("q1")
    assert not controller.is_busy

    gated_service.answer("Second?", reply())
    outcome = await task

    assert outcome.status == "cancelled"
    assert rooted_store.snapshot().node_ids() == ["main", "q3"]


@pytest.mark.asyncio
async def test_cancel_discards_late_response(controller, gated_service, rooted_store):
    task = await _start(controller, gated_service, "q3")

    assert controller.cancel("q3") is True
    assert controller.cancel("q3") is False

    gated_service.answer("Third?", reply())
    outcome = await task

    assert outcome.status == "cancelled"
    assert not rooted_store.get_node("q3").is_expanded
    assert rooted_store.children_of("q3") == []


@pytest.mark.asyncio
async def test_failure_leaves_node_unexpanded_and_reports(controller, gated_service, rooted_store):
    failures: list[ExpansionFailure] = []
    controller.on_error(failures.append)
    before = rooted_store.snapshot()

    task = await _start(controller, gated_service, "q3")
    gated_service.fail("Third?", AdapterError("gated", "search", RuntimeError("boom")))
    outcome = await task

    assert outcome.status == "failed"
    assert "boom" in outcome.reason
    assert rooted_store.snapshot() == before
    assert controller.state_of("q3") == "idle"
    assert len(failures) == 1
    assert failures[0].node_id == "q3"
    assert isinstance(failures[0].original_error, AdapterError)

    # The node can be retried.
    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", reply())
    assert (await task).succeeded


@pytest.mark.asyncio
async def test_failure_after_cancel_is_silent(controller, gated_service):
    failures = []
    controller.on_error(failures.append)

    task = await _start(controller, gated_service, "q3")
    controller.cancel("q3")
    gated_service.fail("Third?", RuntimeError("late"))

    assert (await task).status == "cancelled"
    assert failures == []


@pytest.mark.asyncio
async def test_task_cancellation_releases_controller(controller, gated_service):
    task = await _start(controller, gated_service, "q3")
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not controller.is_busy


@pytest.mark.asyncio
async def test_conversation_turn_records_previous_answer(controller, gated_service, state):
    task = await _start(controller, gated_service, "q1")
    assert gated_service.requests[0].previous_conversation == []
    gated_service.answer("First?", reply("First answer."))
    await task

    # Nothing answered through this controller before q1.
    assert state.conversation_history == []
    assert controller.last_expanded_id == "q1"

    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", reply("Third answer."))
    await task

    assert state.conversation_history == [ConversationTurn(user="First?", assistant="First answer.")]

    task = await _start(controller, gated_service, "q2")
    assert gated_service.requests[2].previous_conversation == state.conversation_history
    gated_service.answer("Second?", reply("Second answer."))
    await task

    assert state.conversation_history[-1] == ConversationTurn(user="Third?", assistant="Third answer.")


@pytest.mark.asyncio
async def test_conversation_turn_follows_completion_order(store, state, gated_service):
    store.add_node(Node(id="main", kind="main", label="Root"))
    for node_id in ("qA", "qB", "qC"):
        store.add_child("main", Node(id=node_id, label=node_id))
    controller = ExpansionController(store, state, gated_service)

    for node_id in ("qC", "qA", "qB"):
        task = await _start(controller, gated_service, node_id)
        gated_service.answer(node_id, reply(f"{node_id} answer.", questions=()))
        assert (await task).succeeded

    assert [turn.user for turn in state.conversation_history] == ["qC", "qA"]
    assert state.conversation_history[-1] == ConversationTurn(user="qA", assistant="qA answer.")
    assert controller.last_expanded_id == "qB"


@pytest.mark.asyncio
async def test_failed_apply_leaves_history_untouched(controller, gated_service, state, rooted_store, monkeypatch):
    task = await _start(controller, gated_service, "q1")
    gated_service.answer("First?", reply("First answer."))
    await task

    def broken_apply(node_id, result):
        raise InvalidStateError("is_expanded", "False", "True")

    monkeypatch.setattr(rooted_store, "apply_expansion_result", broken_apply)
    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", reply("Third answer."))
    with pytest.raises(InvalidStateError):
        await task

    assert state.conversation_history == []
    assert controller.last_expanded_id == "q1"


@pytest.mark.asyncio
async def test_deleting_last_expanded_node_forgets_it(controller, gated_service, state, rooted_store):
    task = await _start(controller, gated_service, "q2")
    gated_service.answer("Second?", reply("Second answer."))
    await task

    rooted_store.remove_subtree("q1")
    assert controller.last_expanded_id is None
    assert controller.last_expanded_node() is None

    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", reply())
    await task
    assert state.conversation_history == []


@pytest.mark.asyncio
async def test_request_carries_concept_and_mode(rooted_store, state, gated_service):
    state.current_concept = "entropy"
    controller = ExpansionController(rooted_store, state, gated_service, follow_up_mode="focused")

    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", reply())
    await task

    request = gated_service.requests[0]
    assert request.query == "Third?"
    assert request.concept == "entropy"
    assert request.follow_up_mode == "focused"


@pytest.mark.asyncio
async def test_service_follow_ups_take_precedence(controller, gated_service, rooted_store):
    text = "Body.\n#### Follow-up Questions\n1. From text?"
    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", QueryResponse(response=text, follow_up_questions=["From service?"]))
    await task

    node = rooted_store.get_node("q3")
    assert node.content == text
    assert [rooted_store.get_node(c).label for c in rooted_store.children_of("q3")] == ["From service?"]


@pytest.mark.asyncio
async def test_follow_ups_parsed_from_text_when_service_sends_none(controller, gated_service, rooted_store):
    text = "Body.\n#### Follow-up Questions\n1. From text?"
    task = await _start(controller, gated_service, "q3")
    gated_service.answer("Third?", QueryResponse(response=text, follow_up_questions=[]))
    await task

    node = rooted_store.get_node("q3")
    assert node.content == "Body."
    assert [rooted_store.get_node(c).label for c in rooted_store.children_of("q3")] == ["From text?"]


@pytest.mark.asyncio
async def test_extra_custom_questions_become_custom_children(controller, gated_service, rooted_store):
    task = await _start(controller, gated_service, "q3", extra_custom_questions=["Mine?", "Why?"])
    gated_service.answer("Third?", reply(questions=["Why?"]))
    await task

    children = [rooted_store.get_node(c) for c in rooted_store.children_of("q3")]
    assert [(c.label, c.is_custom) for c in children] == [("Why?", False), ("Mine?", True)]


@pytest.mark.asyncio
async def test_replace_cancels_pending_expansion(controller, gated_service, rooted_store):
    task = await _start(controller, gated_service, "q3")
    rooted_store.clear()
    gated_service.answer("Third?", reply())

    assert (await task).status == "cancelled"
    assert len(rooted_store) == 0
