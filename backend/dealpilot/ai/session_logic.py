"""
Server side of the guided document conversation.

The client never computes phase transitions; every turn is routed through
handle_conversational_template(), which returns the authoritative next state.
"""
import logging
from typing import Optional

from ..schemas import (
    ConversationalRequest,
    ConversationalResponse,
    ConversationState,
    DealContext,
    QuickOption,
)
from .generators import build_partial_preview, build_recap, build_welcome
from .model import AIModel
from .questions import (
    QuestionFlow,
    document_type_options,
    get_question_flow,
    is_ready_to_generate,
    match_document_type,
    match_option,
)

logger = logging.getLogger(__name__)

GENERATE_WORDS = ("generate", "yes", "create")
MODIFY_WORDS = ("modify", "change", "back")

CONFIRM_OPTIONS = [
    QuickOption(label="Generate Document", value="generate", description="Create the document now"),
    QuickOption(label="Modify Answers", value="modify", description="Go back and change something"),
]


def _question_prompt(flow: QuestionFlow, index: int, lead: str, with_progress: bool = False) -> str:
    question = flow.questions[index]
    progress = f"*({index + 1}/{len(flow.questions)})* " if with_progress else ""
    return f"{lead}\n\n{progress}{question.help_text}\n\n**{question.question}**"


def _start_gathering(state: ConversationState, flow: QuestionFlow, lead: str, deal: DealContext) -> ConversationalResponse:
    state.document_type = flow.document_type
    state.phase = "gathering"
    state.current_question_index = 0
    state.gathered_answers = {}
    return ConversationalResponse(
        message=_question_prompt(flow, 0, lead),
        state=state,
        options=flow.questions[0].quick_options(),
        partial_document=build_partial_preview(flow.document_type, {}, deal),
    )


def _record_answer(state: ConversationState, flow: QuestionFlow, value: str, lead: str, deal: DealContext) -> ConversationalResponse:
    question = flow.questions[state.current_question_index]
    state.gathered_answers[question.id] = value
    state.current_question_index += 1
    preview = build_partial_preview(flow.document_type, state.gathered_answers, deal)

    if state.current_question_index < len(flow.questions):
        nxt = flow.questions[state.current_question_index]
        return ConversationalResponse(
            message=_question_prompt(flow, state.current_question_index, lead, with_progress=True),
            state=state,
            options=nxt.quick_options(),
            partial_document=preview,
        )

    state.phase = "confirming"
    return ConversationalResponse(
        message=build_recap(flow, state.gathered_answers, lead),
        state=state,
        options=list(CONFIRM_OPTIONS),
        partial_document=preview,
    )


def _select_type(state: ConversationState, raw: str, deal: DealContext, ai: AIModel) -> ConversationalResponse:
    flow = match_document_type(raw)
    if flow:
        return _start_gathering(state, flow, f"Great choice! Let's create your **{flow.display_name}**.", deal)

    if raw.strip() and raw.strip().lower() != "start":
        interpretation = ai.match_document_type_chat(raw, deal)
        flow = get_question_flow(interpretation.matched)
        if flow:
            return _start_gathering(state, flow, interpretation.message, deal)
        return ConversationalResponse(
            message=f"{interpretation.message}\n\n**What type of document would you like to create?**",
            state=state,
            options=document_type_options(),
        )

    return ConversationalResponse(
        message=build_welcome(deal),
        state=state,
        options=document_type_options(),
    )


def _invalid_type(state: ConversationState) -> ConversationalResponse:
    return ConversationalResponse(
        success=False,
        message="Invalid document type selected.",
        state=state,
        error="Invalid document type",
    )


def _gathering(state: ConversationState, raw: str, deal: DealContext, ai: AIModel) -> ConversationalResponse:
    flow = get_question_flow(state.document_type)
    if not flow:
        return _invalid_type(state)

    question = flow.question_at(state.current_question_index)
    if question is None:
        # every question already answered; fall through to the recap
        state.phase = "confirming"
        return ConversationalResponse(
            message=build_recap(flow, state.gathered_answers, "I have all the information I need."),
            state=state,
            options=list(CONFIRM_OPTIONS),
        )

    option = match_option(raw, question)
    if option:
        return _record_answer(state, flow, option.value, f"Got it! *{option.label}*", deal)

    interpretation = ai.interpret_answer(raw, flow, question, deal)
    if interpretation.matched is not None:
        return _record_answer(state, flow, interpretation.matched, interpretation.message, deal)

    return ConversationalResponse(
        message=f"{interpretation.message}\n\n**{question.question}**",
        state=state,
        options=question.quick_options(),
    )


def _resume_gathering(state: ConversationState, flow: QuestionFlow, deal: DealContext) -> ConversationalResponse:
    index = flow.first_unanswered(state.gathered_answers)
    state.phase = "gathering"
    state.current_question_index = index
    logger.info("%s is missing required answers, resuming at question %d", state.document_type, index + 1)
    return ConversationalResponse(
        message=_question_prompt(flow, index, "I still need a few details before I can draft this.", with_progress=True),
        state=state,
        options=flow.questions[index].quick_options(),
        partial_document=build_partial_preview(flow.document_type, state.gathered_answers, deal),
    )


def _confirming(state: ConversationState, raw: str, deal: DealContext, ai: AIModel) -> ConversationalResponse:
    flow = get_question_flow(state.document_type)
    if not flow:
        return _invalid_type(state)
    text = raw.lower().strip()
    if any(w in text for w in GENERATE_WORDS):
        if not is_ready_to_generate(flow.document_type, state.gathered_answers):
            return _resume_gathering(state, flow, deal)
        state.phase = "generating"
        logger.info("Generating %s with %d answers", state.document_type, len(state.gathered_answers))
        document = ai.generate_document(state.document_type, state.gathered_answers, deal)
        state.phase = "complete"
        return ConversationalResponse(
            message=f"Your **{state.document_type}** is ready! You can review and edit it below.",
            state=state,
            is_complete=True,
            generated_document=document.content,
            disclaimer=document.disclaimer,
        )

    if any(w in text for w in MODIFY_WORDS):
        return _start_gathering(state, flow, "No problem! Let's start over.", deal)

    return ConversationalResponse(
        message="Would you like me to generate the document now, or would you like to modify your answers?",
        state=state,
        options=list(CONFIRM_OPTIONS),
    )


def _fallback() -> ConversationalResponse:
    return ConversationalResponse(
        message="I'm here to help you create legal documents. What type of document would you like to generate?",
        state=ConversationState(),
        options=document_type_options(),
    )


def _last_user_message(request: ConversationalRequest) -> str:
    for message in reversed(request.messages):
        if message.role == "user":
            return message.content
    return ""


def handle_conversational_template(request: ConversationalRequest, ai: Optional[AIModel] = None) -> ConversationalResponse:
    ai = ai or AIModel()
    original = request.conversational_state or ConversationState()
    state = original.model_copy(deep=True)
    deal = request.context.deal_context
    raw = _last_user_message(request)

    try:
        if state.phase == "select_type":
            return _select_type(state, raw, deal, ai)
        if state.phase == "gathering" and state.document_type:
            return _gathering(state, raw, deal, ai)
        if state.phase == "confirming":
            return _confirming(state, raw, deal, ai)
        return _fallback()
    except Exception as exc:
        logger.exception("Conversational template error for deal %s", request.deal_id)
        return ConversationalResponse(
            success=False,
            message="An error occurred. Please try again.",
            state=original,
            error=str(exc) or exc.__class__.__name__,
        )