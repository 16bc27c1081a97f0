"""
Tests for the conversation controller: optimistic sends, undo history,
failure rollback and in-flight handling.
Run with: pytest backend/tests/test_controller.py
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import reply
from dealpilot.ai.model import AIModel
from dealpilot.ai.questions import get_question_flow
from dealpilot.client.controller import FAILURE_NOTICE, ConversationController, strict_transition
from dealpilot.client.errors import DealLookupError, TransportError
from dealpilot.client.session import ConversationSession, SessionContext
from dealpilot.client.transport import LocalAssistantTransport
from dealpilot.schemas import ConversationMessage, ConversationState, DealContext, QuickOption


CTX = SessionContext(user_id="user-1", deal_id="deal-1")


class ScriptedTransport:
    """Returns (or raises) the queued items in order and records every request."""

    def __init__(self, *items):
        self.items = list(items)
        self.requests = []

    async def converse(self, request):
        self.requests.append(request)
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class GatedTransport:
    """Holds each call until the test opens the gate."""

    def __init__(self, response):
        self.response = response
        self.started = asyncio.Event()
        self.gate = asyncio.Event()
        self.calls = 0

    async def converse(self, request):
        self.calls += 1
        self.started.set()
        await self.gate.wait()
        return self.response


def view(session):
    return (list(session.messages), session.state, list(session.options))


WELCOME = reply("What type of document?", options=[("NDA", "nda")])
GATHERING = reply(
    "Who shares information?", phase="gathering", document_type="nda",
    options=[("Mutual", "mutual")],
)


# ---------------------------------------------------------------------------
# Example scenario
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_start_select_and_go_back():
    transport = ScriptedTransport(WELCOME, GATHERING)
    c = ConversationController(CTX, transport)

    await c.start_conversation()
    s = c.session
    assert s.messages == [
        ConversationMessage(role="user", content="start"),
        ConversationMessage(role="assistant", content="What type of document?"),
    ]
    assert [o.label for o in s.options] == ["NDA"]
    assert len(s.history) == 1
    assert s.history[0].messages == ()
    assert c.can_go_back

    await c.select_option(QuickOption(label="NDA", value="nda"))
    assert len(c.session.history) == 2
    assert c.session.state.phase == "gathering"
    assert transport.requests[-1].messages[-1].content == "nda"

    c.go_back()
    assert c.session.state.phase == "select_type"
    assert len(c.session.history) == 1
    assert len(c.session.messages) == 2
    assert [o.value for o in c.session.options] == ["nda"]


@pytest.mark.asyncio
async def test_request_carries_transcript_state_and_deal():
    transport = ScriptedTransport(WELCOME, GATHERING)
    deals = MagicMock()
    deals.fetch = AsyncMock(return_value=DealContext(title="Harbour Cafe Sale"))
    c = ConversationController(CTX, transport, deals)

    await c.start_conversation()
    await c.send_message("nda")

    first, second = transport.requests
    assert first.deal_id == "deal-1" and first.user_id == "user-1"
    assert [m.content for m in first.messages] == ["start"]
    assert first.conversational_state == ConversationState()
    assert [m.content for m in second.messages] == ["start", "What type of document?", "nda"]
    assert second.context.deal_context.title == "Harbour Cafe Sale"
    assert deals.fetch.await_count == 2  # fetched fresh for every turn


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_n_sends_then_n_go_backs_restores_start():
    transport = ScriptedTransport(
        WELCOME,
        GATHERING,
        reply("How long?", phase="gathering", document_type="nda", answers={"nda_type": "mutual"}, index=1),
        reply("Scope?", phase="gathering", document_type="nda", answers={"nda_type": "mutual", "duration": "3"}, index=2),
    )
    c = ConversationController(CTX, transport)
    await c.start_conversation()
    after_start = view(c.session)

    for text in ["nda", "mutual", "3"]:
        await c.send_message(text)
    assert len(c.session.history) == 4

    for _ in range(3):
        c.go_back()
    assert view(c.session) == after_start
    assert len(c.session.history) == 1


def test_go_back_on_empty_history_is_noop():
    c = ConversationController(CTX, ScriptedTransport())
    c.go_back()
    assert c.session == ConversationSession()


@pytest.mark.asyncio
async def test_go_back_clears_error_and_outputs():
    transport = ScriptedTransport(WELCOME, TransportError("down"), GATHERING)
    c = ConversationController(CTX, transport, notify=lambda m: None)
    await c.start_conversation()
    await c.send_message("nda")
    assert c.session.error == "down"
    c.go_back()
    assert c.session.error is None
    assert c.session.messages == []


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reset_is_idempotent():
    c = ConversationController(CTX, ScriptedTransport(WELCOME))
    await c.start_conversation()
    c.reset()
    once = c.session
    c.reset()
    assert c.session == once == ConversationSession()
    assert not c.can_go_back


@pytest.mark.asyncio
async def test_start_conversation_wipes_previous_session():
    c = ConversationController(CTX, ScriptedTransport(WELCOME, GATHERING, WELCOME))
    await c.start_conversation()
    await c.send_message("nda")
    await c.start_conversation()
    assert [m.content for m in c.session.messages] == ["start", "What type of document?"]
    assert len(c.session.history) == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_failed_send_rolls_back_history_but_keeps_message():
    notices = []
    c = ConversationController(
        CTX, ScriptedTransport(WELCOME, TransportError("HTTP 500: boom")), notify=notices.append
    )
    await c.start_conversation()
    before = len(c.session.history)

    await c.send_message("hello")

    s = c.session
    assert len(s.history) == before
    assert s.messages[-1] == ConversationMessage(role="user", content="hello")
    assert s.error == "HTTP 500: boom"
    assert not s.is_loading
    assert notices == [FAILURE_NOTICE]
    assert s.state == ConversationState()


@pytest.mark.asyncio
async def test_retry_after_failure():
    c = ConversationController(CTX, ScriptedTransport(TransportError("offline"), WELCOME), notify=lambda m: None)
    await c.send_message("start")
    assert c.session.error == "offline"
    await c.send_message("start")
    assert c.session.error is None
    assert c.session.messages[-1].content == "What type of document?"


@pytest.mark.asyncio
async def test_unexpected_exception_is_absorbed():
    c = ConversationController(CTX, ScriptedTransport(KeyError("message")), notify=lambda m: None)
    await c.send_message("start")
    assert c.session.error == "'message'"
    assert c.session.history == []


@pytest.mark.asyncio
async def test_missing_deal_does_not_fail_the_turn():
    deals = MagicMock()
    deals.fetch = AsyncMock(side_effect=DealLookupError("Deal deal-1 not found"))
    transport = ScriptedTransport(WELCOME)
    c = ConversationController(CTX, transport, deals)
    await c.start_conversation()
    assert c.session.error is None
    assert transport.requests[0].context.deal_context == DealContext()


# ---------------------------------------------------------------------------
# Input rejection
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_blank_message_is_ignored(text):
    transport = ScriptedTransport()
    c = ConversationController(CTX, transport)
    await c.send_message(text)
    assert transport.requests == []
    assert c.session == ConversationSession()


@pytest.mark.asyncio
async def test_message_without_user_is_ignored():
    transport = ScriptedTransport()
    c = ConversationController(SessionContext(user_id=None, deal_id="deal-1"), transport)
    await c.start_conversation()
    assert transport.requests == []
    assert c.session.messages == []


# ---------------------------------------------------------------------------
# Response adoption
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_state_and_options_fall_back():
    bare = reply("Could you clarify?")
    bare.state = None
    bare.options = None
    c = ConversationController(CTX, ScriptedTransport(GATHERING, bare))
    await c.send_message("nda")
    await c.send_message("huh")
    assert c.session.state.phase == "gathering"
    assert c.session.options == []


@pytest.mark.asyncio
async def test_completion_flag_is_trusted_over_phase():
    done = reply(
        "Your document is ready", phase="confirming", document_type="nda",
        is_complete=True, generated_document="DEED", disclaimer="careful",
    )
    c = ConversationController(CTX, ScriptedTransport(done))
    await c.send_message("generate")
    s = c.session
    assert s.is_complete
    assert s.generated_document == "DEED"
    assert s.disclaimer == "careful"
    assert not c.can_go_back


@pytest.mark.asyncio
async def test_messages_after_completion_are_ignored():
    done = reply(
        "Your document is ready", phase="complete", document_type="nda",
        is_complete=True, generated_document="DEED", disclaimer="careful",
    )
    transport = ScriptedTransport(GATHERING, done, WELCOME)
    c = ConversationController(CTX, transport)
    await c.send_message("nda")
    await c.send_message("generate")
    transcript = list(c.session.messages)
    history = list(c.session.history)

    await c.send_message("thanks")
    await c.select_option(QuickOption(label="NDA", value="nda"))
    c.go_back()

    s = c.session
    assert len(transport.requests) == 2
    assert s.messages == transcript
    assert s.history == history
    assert s.is_complete
    assert s.generated_document == "DEED"
    assert s.disclaimer == "careful"
    assert s.state.phase == "complete"


@pytest.mark.asyncio
async def test_unreadable_deal_body_does_not_fail_the_turn():
    import httpx
    from dealpilot.client.transport import HttpDealSource

    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>oops</html>")))
    transport = ScriptedTransport(WELCOME)
    c = ConversationController(CTX, transport, HttpDealSource(base_url="http://assistant", client=client))
    await c.start_conversation()
    await client.aclose()
    assert c.session.error is None
    assert transport.requests[0].context.deal_context == DealContext()


@pytest.mark.asyncio
async def test_outputs_ignored_without_completion_flag():
    partial = reply("Next question", phase="gathering", document_type="nda", generated_document="stray")
    c = ConversationController(CTX, ScriptedTransport(partial))
    await c.send_message("nda")
    assert not c.session.is_complete
    assert c.session.generated_document is None


# ---------------------------------------------------------------------------
# In-flight handling
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_can_go_back_false_while_loading():
    c = ConversationController(CTX, ScriptedTransport(WELCOME))
    await c.start_conversation()
    gated = GatedTransport(GATHERING)
    c.transport = gated

    task = asyncio.create_task(c.send_message("nda"))
    await gated.started.wait()
    assert c.session.is_loading
    assert len(c.session.history) == 2
    assert not c.can_go_back

    gated.gate.set()
    await task
    assert not c.session.is_loading
    assert c.can_go_back


@pytest.mark.asyncio
async def test_second_send_while_loading_is_rejected():
    gated = GatedTransport(WELCOME)
    c = ConversationController(CTX, gated)
    task = asyncio.create_task(c.send_message("start"))
    await gated.started.wait()

    await c.send_message("again")
    assert gated.calls == 1
    assert [m.content for m in c.session.messages] == ["start"]

    gated.gate.set()
    await task
    assert [m.content for m in c.session.messages] == ["start", "What type of document?"]


@pytest.mark.asyncio
async def test_reply_after_reset_is_dropped():
    gated = GatedTransport(WELCOME)
    c = ConversationController(CTX, gated)
    task = asyncio.create_task(c.send_message("start"))
    await gated.started.wait()

    c.reset()
    gated.gate.set()
    await task
    assert c.session == ConversationSession()


@pytest.mark.asyncio
async def test_reply_after_go_back_is_dropped():
    c = ConversationController(CTX, ScriptedTransport(WELCOME))
    await c.start_conversation()
    after_start = view(c.session)
    gated = GatedTransport(GATHERING)
    c.transport = gated

    task = asyncio.create_task(c.send_message("nda"))
    await gated.started.wait()
    c.go_back()
    assert not c.session.is_loading
    gated.gate.set()
    await task
    assert view(c.session) == after_start


# ---------------------------------------------------------------------------
# Transition validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_strict_validator_rejects_phase_without_document_type():
    broken = reply("Question one", phase="gathering", document_type=None)
    c = ConversationController(
        CTX, ScriptedTransport(broken), notify=lambda m: None, transition_validator=strict_transition
    )
    await c.send_message("nda")
    assert "requires a document type" in c.session.error
    assert c.session.history == []
    assert c.session.state == ConversationState()


def test_strict_validator_rejects_leaving_complete():
    from dealpilot.client.errors import InvalidTransitionError

    done = ConversationState(phase="complete", document_type="Letter of Intent")
    with pytest.raises(InvalidTransitionError):
        strict_transition(done, ConversationState())


def test_strict_validator_checks_gathered_answers():
    from dealpilot.client.errors import InvalidTransitionError

    current = ConversationState(phase="gathering", document_type="Letter of Intent")
    skipped = ConversationState(phase="gathering", document_type="Letter of Intent", current_question_index=2,
                                gathered_answers={"binding_provisions": "none"})
    with pytest.raises(InvalidTransitionError, match="exclusivity"):
        strict_transition(current, skipped)


# ---------------------------------------------------------------------------
# Against the real engine
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_local_engine_walkthrough_keeps_invariants():
    c = ConversationController(
        CTX,
        LocalAssistantTransport(AIModel(gemini_api_key=None, openai_api_key=None)),
        transition_validator=strict_transition,
    )
    await c.start_conversation()
    flow = get_question_flow("Letter of Intent")
    await c.send_message("LOI")
    for question in flow.questions:
        assert c.session.state.phase == "gathering"
        assert c.session.options
        await c.select_option(c.session.options[0])
        assert c.session.error is None
        state = c.session.state
        for q in flow.questions[:state.current_question_index]:
            assert q.id in state.gathered_answers

    assert c.session.state.phase == "confirming"
    await c.send_message("generate")
    assert c.session.is_complete
    assert c.session.state.phase == "complete"
    assert "LETTER OF INTENT" in c.session.generated_document
    assert not c.can_go_back
