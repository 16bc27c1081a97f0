"""
Conversation controller for guided document generation.

The controller owns one ConversationSession and drives it turn by turn:
each user message is applied optimistically, sent to the assistant together
with the full transcript and current state, and the assistant's answer is
adopted as-is. Phase transitions are decided by the server; the controller
only keeps a LIFO history of pre-send snapshots so the last turn can be
undone.

Failures never propagate to the caller. A failed turn leaves the user's
message in the transcript, records `session.error`, and removes the history
entry pushed for that turn.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from ..ai.questions import get_question_flow
from ..schemas import (
    ConversationalRequest,
    ConversationalResponse,
    ConversationMessage,
    ConversationState,
    DealContext,
    QuickOption,
    RequestContext,
)
from .errors import DealLookupError, InvalidTransitionError
from .session import ConversationSession, HistoryEntry, SessionContext
from .transport import AssistantTransport, DealSource

logger = logging.getLogger(__name__)

FAILURE_NOTICE = "Failed to process request"

Notifier = Callable[[str], None]
TransitionValidator = Callable[[ConversationState, ConversationState], None]


def log_notifier(message: str) -> None:
    logger.warning("%s", message)


def trust_server(current: ConversationState, proposed: ConversationState) -> None:
    """Accept whatever state the assistant returns."""
    return None


def strict_transition(current: ConversationState, proposed: ConversationState) -> None:
    """Reject states that break the phase/document-type and answer invariants."""
    if proposed.phase != "select_type" and not proposed.document_type:
        raise InvalidTransitionError(f"Phase {proposed.phase} requires a document type")
    if current.phase == "complete" and proposed.phase != "complete":
        raise InvalidTransitionError("A completed conversation can only be restarted with reset")
    flow = get_question_flow(proposed.document_type)
    if flow and proposed.phase == "gathering":
        asked = flow.questions[:proposed.current_question_index]
        missing = [q.id for q in asked if q.id not in proposed.gathered_answers]
        if missing:
            raise InvalidTransitionError(f"Missing answers for {', '.join(missing)}")


class ConversationController:
    def __init__(
        self,
        context: SessionContext,
        transport: AssistantTransport,
        deal_source: Optional[DealSource] = None,
        notify: Optional[Notifier] = None,
        transition_validator: Optional[TransitionValidator] = None,
    ):
        self.context = context
        self.transport = transport
        self.deal_source = deal_source
        self.notify = notify or log_notifier
        self.validate_transition = transition_validator or trust_server
        self.session = ConversationSession()
        # bumped by reset/go_back so replies to abandoned turns are dropped
        self._generation = 0

    @property
    def can_go_back(self) -> bool:
        s = self.session
        return bool(s.history) and not s.is_loading and not s.is_complete

    async def start_conversation(self) -> None:
        self.reset()
        await self.send_message("start")

    async def select_option(self, option: QuickOption) -> None:
        await self.send_message(option.value)

    async def send_message(self, content: str) -> None:
        if not self.context.user_id or not content or not content.strip():
            return
        if self.session.is_loading:
            logger.warning("Ignoring message while another turn is in flight")
            return
        if self.session.is_complete:
            logger.warning("Ignoring message after the document was generated; reset to start again")
            return

        generation = self._generation
        entry = self._apply_optimistic(content)
        try:
            deal = await self._fetch_deal()
            request = ConversationalRequest(
                deal_id=self.context.deal_id,
                user_id=self.context.user_id,
                messages=list(self.session.messages),
                conversational_state=self.session.state.model_copy(deep=True),
                context=RequestContext(deal_context=deal),
            )
            response = await self.transport.converse(request)
            if response.state is not None:
                self.validate_transition(self.session.state, response.state)
        except Exception as exc:
            if generation != self._generation:
                logger.info("Dropping failure of an abandoned turn: %s", exc)
                return
            logger.error("Conversational doc gen error: %s", exc, exc_info=True)
            self._compensate(entry, exc)
            return

        if generation != self._generation:
            logger.info("Dropping reply to an abandoned turn")
            return
        self._apply_response(response)

    def go_back(self) -> None:
        if not self.session.history or self.session.is_complete:
            return
        self._generation += 1
        entry = self.session.history.pop()
        self.session.restore(entry)
        self.session.is_loading = False
        self.session.error = None

    def reset(self) -> None:
        self._generation += 1
        self.session = ConversationSession()

    async def _fetch_deal(self) -> DealContext:
        if self.deal_source is None:
            return DealContext()
        try:
            return await self.deal_source.fetch(self.context.deal_id)
        except DealLookupError as exc:
            logger.warning("Sending without deal context: %s", exc)
            return DealContext()

    def _apply_optimistic(self, content: str) -> HistoryEntry:
        s = self.session
        entry = s.snapshot()
        s.messages.append(ConversationMessage(role="user", content=content))
        s.history.append(entry)
        s.is_loading = True
        s.error = None
        return entry

    def _compensate(self, entry: HistoryEntry, exc: Exception) -> None:
        s = self.session
        self.notify(FAILURE_NOTICE)
        s.error = str(exc) or exc.__class__.__name__
        if s.history and s.history[-1] is entry:
            s.history.pop()
        s.is_loading = False

    def _apply_response(self, response: ConversationalResponse) -> None:
        s = self.session
        s.messages.append(ConversationMessage(role="assistant", content=response.message))
        if response.state is not None:
            s.state = response.state
        s.options = list(response.options or [])
        s.is_complete = bool(response.is_complete)
        s.generated_document = response.generated_document if s.is_complete else None
        s.disclaimer = response.disclaimer if s.is_complete else None
        if response.partial_document is not None:
            s.partial_document = response.partial_document
        s.is_loading = False
