"""
Transports between the conversation controller and the document assistant.

Every transport either returns a ConversationalResponse or raises
TransportError; callers never have to inspect error-shaped payloads.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from ..ai.model import AIModel
from ..ai.session_logic import handle_conversational_template
from ..config import ASSISTANT_TIMEOUT, ASSISTANT_URL
from ..models import Deal, SessionLocal
from ..schemas import ConversationalRequest, ConversationalResponse, DealContext, DocumentResponse, SaveDocumentRequest
from .errors import DealLookupError, TransportError

logger = logging.getLogger(__name__)

ASSISTANT_PATH = "/functions/document-ai-assistant"


class AssistantTransport(Protocol):
    async def converse(self, request: ConversationalRequest) -> ConversationalResponse: ...


class DealSource(Protocol):
    async def fetch(self, deal_id: str) -> DealContext: ...


def parse_response(data) -> ConversationalResponse:
    """Validate an assistant payload, turning error-shaped bodies into TransportError."""
    if not isinstance(data, dict):
        raise TransportError("Assistant returned a non-object body")
    if data.get("error") or data.get("success") is False:
        raise TransportError(str(data.get("error") or data.get("message") or "Assistant reported a failure"))
    try:
        return ConversationalResponse.model_validate(data)
    except ValidationError as exc:
        raise TransportError(f"Malformed assistant response ({exc.error_count()} errors)") from exc


class _HttpBase:
    def __init__(
        self,
        base_url: str = ASSISTANT_URL,
        timeout: float = ASSISTANT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request to {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc


class HttpAssistantTransport(_HttpBase):
    """Posts each turn to the document-ai-assistant endpoint."""

    async def converse(self, request: ConversationalRequest) -> ConversationalResponse:
        body = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        resp = await self._request("POST", ASSISTANT_PATH, json=body)
        if resp.status_code >= 400:
            raise TransportError(f"HTTP {resp.status_code}: {resp.text[:200]}", status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError("Assistant returned invalid JSON") from exc
        return parse_response(data)


class HttpDealSource(_HttpBase):
    async def fetch(self, deal_id: str) -> DealContext:
        try:
            resp = await self._request("GET", f"/deals/{deal_id}")
        except TransportError as exc:
            raise DealLookupError(str(exc)) from exc
        if resp.status_code == 404:
            raise DealLookupError(f"Deal {deal_id} not found")
        if resp.status_code >= 400:
            raise DealLookupError(f"HTTP {resp.status_code} while loading deal {deal_id}")
        try:
            return DealContext.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise DealLookupError(f"Unreadable deal {deal_id}: {exc.__class__.__name__}") from exc

    async def save_document(self, deal_id: str, payload: SaveDocumentRequest) -> DocumentResponse:
        resp = await self._request(
            "POST", f"/deals/{deal_id}/documents", json=payload.model_dump(mode="json", by_alias=True)
        )
        if resp.status_code >= 400:
            raise TransportError(f"HTTP {resp.status_code}: {resp.text[:200]}", status_code=resp.status_code)
        try:
            return DocumentResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise TransportError(f"Unreadable save response: {exc.__class__.__name__}") from exc


class LocalAssistantTransport:
    """Runs the conversation engine in-process, off the event loop."""

    def __init__(self, ai: Optional[AIModel] = None):
        self.ai = ai or AIModel()

    async def converse(self, request: ConversationalRequest) -> ConversationalResponse:
        response = await asyncio.to_thread(handle_conversational_template, request, self.ai)
        if not response.success or response.error:
            raise TransportError(response.error or response.message)
        return response


class DatabaseDealSource:
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def _load(self, deal_id: str) -> DealContext:
        db = self.session_factory()
        try:
            deal = db.get(Deal, deal_id)
            if not deal:
                raise DealLookupError(f"Deal {deal_id} not found")
            return deal.to_context()
        finally:
            db.close()

    async def fetch(self, deal_id: str) -> DealContext:
        return await asyncio.to_thread(self._load, deal_id)
