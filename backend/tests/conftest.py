"""
Shared test setup. Environment is pinned before any dealpilot module is
imported so the app binds to a throwaway database and runs offline.
"""

import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="dealpilot-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["DOCUMENT_STORAGE_DIR"] = os.path.join(_TMP, "documents")
os.environ["GEMINI_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ.pop("INTERPRETATION_LOG", None)

import pytest

from dealpilot.ai.model import AIModel
from dealpilot.schemas import ConversationalResponse, ConversationState, DealContext, QuickOption


@pytest.fixture
def offline_ai():
    return AIModel(gemini_api_key=None, openai_api_key=None)


@pytest.fixture
def deal():
    return DealContext(
        title="Harbour Cafe Sale",
        business_name="Harbour Cafe Pty Ltd",
        counterparty_name="Jane Buyer",
        deal_type="asset_sale",
        status="draft",
        asking_price=450000,
    )


def reply(message, phase="select_type", document_type=None, answers=None, index=0, options=(), **extra):
    """Build an assistant response the way the server would send it."""
    return ConversationalResponse(
        message=message,
        state=ConversationState(
            phase=phase,
            document_type=document_type,
            gathered_answers=dict(answers or {}),
            current_question_index=index,
        ),
        options=[QuickOption(label=label, value=value) for label, value in options],
        **extra,
    )
