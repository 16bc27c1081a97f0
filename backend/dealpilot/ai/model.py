import re
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from ..config import (
    OPENAI_API_KEY,
    GEMINI_API_KEY,
    OPENAI_CHAT_MODEL,
    OPENAI_DOCUMENT_MODEL,
    INTERPRETATION_LOG,
)
from ..schemas import DealContext
from .questions import Question, QuestionFlow, available_document_types, format_answers_for_generation, get_question_flow
from .generators import DISCLAIMER, generate_document_markdown

logger = logging.getLogger(__name__)

# Separate log of what the model understood from free-text replies
interpretations = logging.getLogger("dealpilot.interpretations")
interpretations.setLevel(logging.INFO)
if INTERPRETATION_LOG and not interpretations.handlers:
    handler = logging.FileHandler(INTERPRETATION_LOG)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    interpretations.addHandler(handler)

DOCUMENT_SYSTEM_PROMPT = (
    "You are an expert Australian commercial lawyer drafting documents for M&A transactions.\n"
    "Use Australian legal terminology, numbered clauses and plain English.\n"
    "Include every standard clause for the document type and tailor it to the requirements given.\n"
    "Return only the document text."
)


@dataclass
class Interpretation:
    message: str
    matched: Optional[str] = None


@dataclass
class GeneratedDocument:
    content: str
    disclaimer: str = DISCLAIMER


def _deal_json(deal: DealContext) -> str:
    return json.dumps(deal.model_dump(by_alias=True, exclude_none=True), ensure_ascii=False)


class AIModel:
    """LLM access for the conversation engine: Gemini first, then OpenAI, else offline answers."""

    def __init__(self, gemini_api_key: Optional[str] = GEMINI_API_KEY, openai_api_key: Optional[str] = OPENAI_API_KEY):
        self.use_gemini = bool(gemini_api_key)
        self.use_openai = bool(openai_api_key) and not self.use_gemini
        if self.use_gemini:
            import google.generativeai as genai  # type: ignore
            genai.configure(api_key=gemini_api_key)
            self._genai = genai
            self._gemini_model_names = [
                "gemini-2.5-flash",
                "gemini-2.0-flash",
                "gemini-flash-latest",
            ]
        elif self.use_openai:
            from openai import OpenAI
            self._openai = OpenAI(api_key=openai_api_key)

    @property
    def online(self) -> bool:
        return self.use_gemini or self.use_openai

    def match_document_type_chat(self, user_message: str, deal: DealContext) -> Interpretation:
        flows = available_document_types()
        types_description = "\n".join(f'- "{f.document_type}": {f.display_name} - {f.description}' for f in flows)
        system = (
            "You are a helpful legal document assistant. The user wants to create a document but you need to "
            "understand which type.\n"
            f"Available document types:\n{types_description}\n\n"
            'If the user clearly indicates a type respond with {"matchedType": "<type>", "message": "<short acknowledgement>"}. '
            'Otherwise respond with {"matchedType": null, "message": "<brief explanation or clarifying question>"}.\n'
            f"Deal context: {_deal_json(deal)}\n"
            "Always respond with valid JSON only."
        )
        text = self._chat(system, user_message, max_tokens=400)
        if not text:
            return Interpretation(
                message="I can help you create NDAs, contracts, agreements, and more. "
                        "Please select a document type from the options above."
            )
        data, raw = self._parse_json_response(text)
        matched = data.get("matchedType")
        if matched and not get_question_flow(matched):
            logger.warning("Model suggested unknown document type %r", matched)
            matched = None
        interpretations.info("document type %r -> %r", user_message, matched)
        return Interpretation(
            message=data.get("message") or raw or "I'd be happy to help you create a document.",
            matched=matched,
        )

    def interpret_answer(self, user_message: str, flow: QuestionFlow, question: Question, deal: DealContext) -> Interpretation:
        options_description = "\n".join(
            f'- "{o.value}": {o.label}' + (f" ({o.description})" if o.description else "")
            for o in question.options
        )
        system = (
            f"You are a helpful legal document assistant. The user is creating a {flow.display_name}.\n"
            f'Current question: "{question.question}"\n'
            f"Available options:\n{options_description}\n\n"
            'If the message clearly matches an option respond with {"matchedOption": "<value>", "message": "<short acknowledgement>"}. '
            'If the user asks about the options or is ambiguous respond with {"matchedOption": null, "message": "<explanation ending with a request to choose>"}.\n'
            f"Deal context: {_deal_json(deal)}\n"
            "Always respond with valid JSON only."
        )
        text = self._chat(system, user_message, max_tokens=300)
        if not text:
            return Interpretation(
                message="I'd be happy to help clarify the options. Could you please select one of the "
                        "choices above, or let me know what you'd like to understand better?"
            )
        data, raw = self._parse_json_response(text)
        matched = data.get("matchedOption")
        if matched is not None and not question.find_option(str(matched)):
            logger.warning("Model suggested unknown option %r for %s", matched, question.id)
            matched = None
        interpretations.info("%s answer %r -> %r", question.id, user_message, matched)
        return Interpretation(
            message=data.get("message") or raw or "I understand. Let me help you with that.",
            matched=str(matched) if matched is not None else None,
        )

    def generate_document(self, document_type: str, answers: Dict, deal: DealContext) -> GeneratedDocument:
        requirements = format_answers_for_generation(document_type, answers)
        system = (
            f"{DOCUMENT_SYSTEM_PROMPT}\n\n"
            f"DEAL CONTEXT:\n{json.dumps(deal.model_dump(by_alias=True, exclude_none=True), indent=2, ensure_ascii=False)}\n\n"
            f"USER REQUIREMENTS FROM CONVERSATION:\n{requirements}"
        )
        prompt = (
            f"Generate a complete {document_type} document based on the requirements gathered during our "
            "conversation. The document should be professional, comprehensive, and ready for use."
        )
        text = self._chat(system, prompt, max_tokens=8000, document=True)
        if text:
            cleaned = re.sub(r"```[\w]*\n?", "", text).replace("**", "").strip()
            if cleaned:
                return GeneratedDocument(content=cleaned)
        # Fallback
        return GeneratedDocument(content=generate_document_markdown(document_type, answers, deal))

    def _chat(self, system: str, user: str, max_tokens: int, document: bool = False) -> Optional[str]:
        if self.use_gemini:
            return self._gemini_generate_text([system, user])
        if self.use_openai:
            model = OPENAI_DOCUMENT_MODEL if document else OPENAI_CHAT_MODEL
            return self._openai_chat_text(model, system, user, max_tokens)
        return None

    def _parse_json_response(self, text: str) -> Tuple[dict, str]:
        """Extracts JSON from text, returns (dict, remaining_text)"""
        s = text.strip()
        try:
            start_idx = s.find("```json")
            if start_idx != -1:
                end_idx = s.find("```", start_idx + 7)
                if end_idx != -1:
                    data = json.loads(s[start_idx + 7:end_idx].strip())
                    if isinstance(data, dict):
                        return data, data.get("message", "")
            start_idx = s.find("{")
            end_idx = s.rfind("}")
            if start_idx != -1 and end_idx > start_idx:
                data = json.loads(s[start_idx:end_idx + 1])
                if isinstance(data, dict):
                    return data, data.get("message", "")
        except json.JSONDecodeError:
            pass
        return {}, s

    def _gemini_generate_text(self, parts: List[str]) -> Optional[str]:
        for name in getattr(self, "_gemini_model_names", []):
            try:
                model = self._genai.GenerativeModel(name)
                resp = model.generate_content(parts)
                text = getattr(resp, "text", None)
                if text:
                    return text
                candidates = getattr(resp, "candidates", None)
                if candidates:
                    parts_seq = getattr(candidates[0].content, "parts", []) if getattr(candidates[0], "content", None) else []
                    for part in parts_seq:
                        part_text = getattr(part, "text", None)
                        if part_text:
                            return part_text
            except Exception as exc:
                logger.warning("Gemini model %s failed: %s", name, exc)
                continue
        return None

    def _openai_chat_text(self, model: str, system: str, user: str, max_tokens: int) -> Optional[str]:
        try:
            resp = self._openai.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=max_tokens,
                temperature=0.3,
            )
            return resp.choices[0].message.content
        except Exception as exc:
            logger.warning("OpenAI chat failed: %s", exc)
            return None
