import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional
from markdown2 import Markdown
from sqlalchemy.orm import Session
from ..config import DOCUMENT_STORAGE_DIR
from ..models import Document, DocumentVersion

logger = logging.getLogger(__name__)

md = Markdown(extras=["tables", "fenced-code-blocks"])

MIME_TYPES = {
    "md": "text/markdown",
    "html": "text/html",
}


def _safe_name(title: str) -> str:
    stem = re.sub(r"[^A-Za-z0-9]+", "_", title).strip("_") or "document"
    return stem[:80]


def render_document(content: str, disclaimer: Optional[str], fmt: str) -> str:
    body = content.rstrip()
    if disclaimer:
        body = f"{body}\n\n---\n\n*{disclaimer}*\n"
    if fmt == "html":
        return md.convert(body)
    return body


def store_generated_document(
    db: Session,
    deal_id: str,
    user_id: str,
    title: str,
    content: str,
    disclaimer: Optional[str] = None,
    fmt: str = "md",
    storage_dir: Optional[str] = None,
) -> Document:
    """Write the document into the deal's folder and record it as version 1."""
    if fmt not in MIME_TYPES:
        raise ValueError(f"Unsupported document format: {fmt}")
    root = Path(storage_dir or DOCUMENT_STORAGE_DIR)
    stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
    file_name = f"{_safe_name(title)}_{stamp}.{fmt}"
    storage_path = f"{deal_id}/{file_name}"

    data = render_document(content, disclaimer, fmt).encode("utf-8")
    target = root / deal_id
    target.mkdir(parents=True, exist_ok=True)
    (target / file_name).write_bytes(data)

    doc = Document(
        deal_id=deal_id,
        name=file_name,
        category="contract",
        uploaded_by=user_id,
        storage_path=storage_path,
        size=len(data),
        type=MIME_TYPES[fmt],
        status="draft",
    )
    db.add(doc)
    db.flush()
    db.add(DocumentVersion(
        document_id=doc.id,
        version_number=1,
        storage_path=storage_path,
        size=len(data),
        type=MIME_TYPES[fmt],
        uploaded_by=user_id,
        description="AI-generated document via guided conversation",
    ))
    db.commit()
    db.refresh(doc)
    logger.info("Stored %s for deal %s (%d bytes)", storage_path, deal_id, len(data))
    return doc
