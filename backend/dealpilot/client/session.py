"""
In-memory state of one document-generation dialog.

A ConversationSession belongs to exactly one controller and is never
persisted; closing the dialog loses the conversation.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..schemas import ConversationMessage, ConversationState, QuickOption


@dataclass(frozen=True)
class SessionContext:
    user_id: Optional[str]
    deal_id: str


@dataclass(frozen=True)
class HistoryEntry:
    """Session as it was right before a user message was sent."""
    messages: Tuple[ConversationMessage, ...]
    state: ConversationState
    options: Tuple[QuickOption, ...]
    partial_document: Optional[str] = None


@dataclass
class ConversationSession:
    messages: List[ConversationMessage] = field(default_factory=list)
    state: ConversationState = field(default_factory=ConversationState)
    options: List[QuickOption] = field(default_factory=list)
    history: List[HistoryEntry] = field(default_factory=list)
    is_loading: bool = False
    is_complete: bool = False
    generated_document: Optional[str] = None
    disclaimer: Optional[str] = None
    partial_document: Optional[str] = None
    error: Optional[str] = None

    def snapshot(self) -> HistoryEntry:
        return HistoryEntry(
            messages=tuple(self.messages),
            state=self.state.model_copy(deep=True),
            options=tuple(o.model_copy() for o in self.options),
            partial_document=self.partial_document,
        )

    def restore(self, entry: HistoryEntry) -> None:
        self.messages = list(entry.messages)
        self.state = entry.state.model_copy(deep=True)
        self.options = [o.model_copy() for o in entry.options]
        self.partial_document = entry.partial_document
