from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional

Phase = Literal["select_type", "gathering", "confirming", "generating", "complete"]
Role = Literal["user", "assistant"]


class WireModel(BaseModel):
    """Base for everything that crosses the assistant boundary (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConversationMessage(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)
    role: Role
    content: str


class ConversationState(WireModel):
    phase: Phase = "select_type"
    document_type: Optional[str] = None
    gathered_answers: Dict[str, Any] = Field(default_factory=dict)
    current_question_index: int = 0


class QuickOption(WireModel):
    label: str
    value: str
    description: Optional[str] = None


class DealContext(WireModel):
    title: Optional[str] = None
    business_name: Optional[str] = None
    asking_price: Optional[float] = None
    deal_type: Optional[str] = None
    industry: Optional[str] = None
    counterparty_name: Optional[str] = None
    status: Optional[str] = None
    deal_category: Optional[str] = None


class RequestContext(WireModel):
    deal_context: DealContext = Field(default_factory=DealContext)


class ConversationalRequest(WireModel):
    operation: str = "conversational_template"
    deal_id: str
    user_id: str
    messages: List[ConversationMessage]
    conversational_state: Optional[ConversationState] = None
    context: RequestContext = Field(default_factory=RequestContext)


class ConversationalResponse(WireModel):
    success: bool = True
    message: str
    state: Optional[ConversationState] = None
    options: Optional[List[QuickOption]] = None
    is_complete: bool = False
    generated_document: Optional[str] = None
    partial_document: Optional[str] = None
    disclaimer: Optional[str] = None
    error: Optional[str] = None


class DealCreate(DealContext):
    id: Optional[str] = None


class DealResponse(DealContext):
    id: str


class SaveDocumentRequest(WireModel):
    user_id: str
    title: str
    content: str
    disclaimer: Optional[str] = None
    format: Literal["md", "html"] = "md"


class DocumentResponse(WireModel):
    id: int
    deal_id: str
    name: str
    storage_path: str
    size: int
    type: str
    status: str
    version_number: int


class DocumentTypeItem(WireModel):
    type: str
    display_name: str
    description: str


class DocumentTypesResponse(WireModel):
    items: List[DocumentTypeItem]
