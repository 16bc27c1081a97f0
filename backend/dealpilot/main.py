import logging
import uuid
from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from .models import SessionLocal, init_db, Deal
from .schemas import (
    ConversationalRequest,
    ConversationalResponse,
    DealCreate,
    DealResponse,
    DocumentResponse,
    DocumentTypeItem,
    DocumentTypesResponse,
    SaveDocumentRequest,
)
from .ai.model import AIModel
from .ai.questions import available_document_types
from .ai.session_logic import handle_conversational_template
from .config import FRONTEND_ORIGIN, LOG_LEVEL
from .integrations.document_store import store_generated_document

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

init_db()
app = FastAPI(title="DealPilot document assistant")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_ORIGIN, "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_ai = None


def get_ai() -> AIModel:
    global _ai
    if _ai is None:
        _ai = AIModel()
    return _ai


OPERATIONS = {
    "conversational_template": handle_conversational_template,
}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/document-types", response_model=DocumentTypesResponse)
def document_types():
    items = [
        DocumentTypeItem(type=f.document_type, display_name=f.display_name, description=f.description)
        for f in available_document_types()
    ]
    return {"items": items}


@app.post("/deals", response_model=DealResponse)
def create_deal(payload: DealCreate, db: Session = Depends(get_db)):
    deal = Deal(
        id=payload.id or str(uuid.uuid4()),
        title=payload.title,
        business_legal_name=payload.business_name,
        asking_price=payload.asking_price,
        deal_type=payload.deal_type,
        business_industry=payload.industry,
        counterparty_name=payload.counterparty_name,
        status=payload.status or "draft",
        deal_category=payload.deal_category,
    )
    db.add(deal)
    db.commit()
    return DealResponse(id=deal.id, **deal.to_context().model_dump())


@app.get("/deals/{deal_id}", response_model=DealResponse)
def get_deal(deal_id: str, db: Session = Depends(get_db)):
    deal = db.get(Deal, deal_id)
    if not deal:
        raise HTTPException(status_code=404, detail="Deal not found")
    return DealResponse(id=deal.id, **deal.to_context().model_dump())


@app.post("/functions/document-ai-assistant", response_model=ConversationalResponse, response_model_exclude_none=True)
def document_ai_assistant(payload: ConversationalRequest, ai: AIModel = Depends(get_ai)):
    """
    Single entry point for the document assistant. Only the guided
    conversation operation is served here.
    """
    handler = OPERATIONS.get(payload.operation)
    if handler is None:
        raise HTTPException(status_code=400, detail=f"Unknown operation: {payload.operation}")
    logger.debug("%s for deal %s, %d messages", payload.operation, payload.deal_id, len(payload.messages))
    return handler(payload, ai)


@app.post("/deals/{deal_id}/documents", response_model=DocumentResponse)
def save_document(deal_id: str, payload: SaveDocumentRequest, db: Session = Depends(get_db)):
    if not db.get(Deal, deal_id):
        raise HTTPException(status_code=404, detail="Deal not found")
    doc = store_generated_document(
        db,
        deal_id=deal_id,
        user_id=payload.user_id,
        title=payload.title,
        content=payload.content,
        disclaimer=payload.disclaimer,
        fmt=payload.format,
    )
    return DocumentResponse(
        id=doc.id,
        deal_id=doc.deal_id,
        name=doc.name,
        storage_path=doc.storage_path,
        size=doc.size,
        type=doc.type,
        status=doc.status,
        version_number=doc.versions[0].version_number if doc.versions else 1,
    )
