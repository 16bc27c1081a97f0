from typing import Dict, List
from jinja2 import Template
from ..schemas import DealContext
from .questions import QuestionFlow, get_question_flow

DISCLAIMER = (
    "IMPORTANT DISCLAIMER: This document was generated by AI based on your inputs and is "
    "provided for informational purposes only. It does not constitute legal advice. This "
    "document should be reviewed by a qualified Australian legal practitioner before execution."
)

WELCOME_TEMPLATE = Template(
    """{% if deal_name %}Welcome! I'll help you create professional documents for **{{ deal_name }}**.{% else %}Welcome! I'll help you create professional legal documents for this deal.{% endif %}
{% if recommendations %}

📋 **Recommended for your deal:**
{% for rec in recommendations %}• {{ rec }}
{% endfor %}{% endif %}

**What type of document would you like to create?**"""
)

RECAP_TEMPLATE = Template(
    """{{ lead }}

**Document Summary:**
{% for item in items %}• **{{ item.title }}**: {{ item.answer }}
{% endfor %}
**Ready to generate your {{ display_name }}?**"""
)

PREVIEW_TEMPLATE = Template(
    """{{ rule }}
{{ display_name }}
{{ rule }}

THIS AGREEMENT is made on [DATE]

BETWEEN:
(1) {{ party_a }} ("Party A")
(2) {{ party_b }} ("Party B")

RECITALS:
{% for r in recitals %}{{ "ABCDEFG"[loop.index0] }}. {{ r }}
{% endfor %}
AGREED TERMS:
{% for clause in clauses %}
{{ loop.index }}. {{ clause.title|upper }}

   {{ loop.index }}.1 {{ clause.text }}
{% endfor %}{% if pending %}
PENDING SECTIONS:
{% for p in pending %}  ○ {{ p }}
{% endfor %}{% endif %}
{{ "─" * 50 }}

EXECUTED as an agreement:

For {{ party_a }}:

_________________________
Signature

For {{ party_b }}:

_________________________
Signature"""
)

DOCUMENT_TEMPLATE = Template(
    """# {{ display_name|upper }}

{% if deal_title %}**Transaction:** {{ deal_title }}

{% endif %}THIS AGREEMENT is made on [DATE]

## Parties

1. {{ party_a }} ("Party A")
2. {{ party_b }} ("Party B")

## Background

{% for r in recitals %}{{ "ABCDEFG"[loop.index0] }}. {{ r }}
{% endfor %}
## Agreed Terms

### 1. Definitions and Interpretation

1.1 Capitalised terms have the meaning given in this clause. Headings are for convenience only.

{% for clause in clauses %}### {{ loop.index + 1 }}. {{ clause.title }}

{{ loop.index + 1 }}.1 {{ clause.text }}

{% endfor %}### {{ clauses|length + 2 }}. Governing Law

{{ clauses|length + 2 }}.1 This Agreement is governed by the laws of New South Wales, Australia, and each party submits to the non-exclusive jurisdiction of its courts.

## Execution

EXECUTED as an agreement.

For {{ party_a }}: _________________________

For {{ party_b }}: _________________________"""
)

CLAUSE_TEXT: Dict[str, Dict[str, str]] = {
    "duration": {
        "2": "The confidentiality obligations under this Agreement shall remain in effect for a period of two (2) years from the date of disclosure.",
        "3": "The confidentiality obligations under this Agreement shall remain in effect for a period of three (3) years from the date of disclosure.",
        "5": "The confidentiality obligations under this Agreement shall remain in effect for a period of five (5) years from the date of disclosure.",
        "perpetual": "The confidentiality obligations under this Agreement shall continue indefinitely and survive termination of this Agreement.",
    },
    "nda_type": {
        "mutual": "Both parties shall protect the Confidential Information of the other party with the same degree of care used to protect their own confidential information.",
        "one-way-seller": "The Recipient shall protect Confidential Information disclosed by the Seller and use it solely to evaluate the proposed transaction.",
        "one-way-buyer": "The Recipient shall protect Confidential Information disclosed by the Buyer and use it solely to evaluate the proposed transaction.",
    },
    "payment_terms": {
        "upfront": "Payment shall be made in full upon execution of this Agreement.",
        "cash": "The purchase price shall be paid in cleared funds on completion.",
        "staged": "The purchase price shall be paid in instalments on the dates set out in Schedule 1.",
    },
    "payment": {
        "milestone": "Payment shall be made in instalments upon completion of agreed milestones.",
        "retainer": "Payment shall be made monthly in arrears within 14 days of invoice.",
        "fixed": "The Client shall pay the fixed fee set out in Schedule 1.",
    },
    "disputes": {
        "mediation": "Any dispute shall first be referred to mediation in accordance with the Resolution Institute Mediation Rules.",
        "arbitration": "Any dispute shall be finally resolved by arbitration in accordance with the ACICA Arbitration Rules.",
        "court": "Any dispute shall be resolved by the courts of the relevant Australian jurisdiction.",
    },
}


def recommend_documents(deal: DealContext) -> List[str]:
    recs = []
    deal_type = (deal.deal_type or "").lower()
    category = (deal.deal_category or "").lower()
    status = (deal.status or "").lower()
    if status in ("draft", "active"):
        recs.append("**Non-Disclosure Agreement (NDA)** - Protect confidential information before sharing sensitive details")
    if "asset" in deal_type or category == "business_sale":
        recs.append("**Asset Purchase Agreement** - Define what assets are being transferred")
        recs.append("**Letter of Intent (LOI)** - Outline key terms before formal negotiations")
    elif "share" in deal_type or "equity" in deal_type:
        recs.append("**Share Purchase Agreement** - Structure equity transfer terms")
    if "service" in deal_type or "consult" in deal_type:
        recs.append("**Service Agreement** - Define scope, deliverables, and payment terms")
    return recs[:3]


def build_welcome(deal: DealContext) -> str:
    deal_name = deal.title or deal.business_name
    return WELCOME_TEMPLATE.render(deal_name=deal_name, recommendations=recommend_documents(deal)).strip()


def _answer_items(flow: QuestionFlow, answers: Dict) -> List[Dict]:
    items = []
    for key, value in answers.items():
        question = flow.find_question(key)
        option = question.find_option(value) if question else None
        items.append({
            "title": question.title if question else key,
            "answer": option.label if option else value,
        })
    return items


def build_recap(flow: QuestionFlow, answers: Dict, lead: str) -> str:
    return RECAP_TEMPLATE.render(
        lead=lead, items=_answer_items(flow, answers), display_name=flow.display_name
    ).strip()


def clause_text(question_id: str, value: str, label: str) -> str:
    text = CLAUSE_TEXT.get(question_id, {}).get(str(value).lower())
    if text:
        return text
    return f"The parties agree that {label.lower()} shall apply to this Agreement."


def _recitals(document_type: str) -> List[str]:
    t = document_type.lower()
    if "disclosure" in t or "confidential" in t:
        return [
            "The parties wish to explore a potential business relationship.",
            "In connection with this, confidential information may be disclosed.",
        ]
    if "purchase" in t or "sale" in t or "intent" in t:
        return [
            "Party A wishes to sell and Party B wishes to purchase certain assets/interests.",
            "The parties have agreed to the terms set out in this Agreement.",
        ]
    if "service" in t:
        return [
            "Party A provides certain services.",
            "Party B wishes to engage Party A to provide such services.",
        ]
    return [
        "The parties wish to enter into a business arrangement.",
        "The parties have agreed to the terms set out below.",
    ]


def _clauses(flow: QuestionFlow, answers: Dict) -> List[Dict]:
    clauses = []
    for question in flow.questions:
        value = answers.get(question.id)
        if value is None:
            continue
        option = question.find_option(value)
        label = option.label if option else str(value)
        clauses.append({"title": question.title, "text": clause_text(question.id, value, label)})
    return clauses


def build_partial_preview(document_type: str, answers: Dict, deal: DealContext) -> str:
    flow = get_question_flow(document_type)
    if not flow:
        return ""
    pending = [q.title for q in flow.questions if q.id not in answers]
    md = PREVIEW_TEMPLATE.render(
        rule="═" * 50,
        display_name=flow.display_name,
        party_a=deal.business_name or "[BUSINESS NAME]",
        party_b=deal.counterparty_name or "[COUNTERPARTY]",
        recitals=_recitals(document_type),
        clauses=_clauses(flow, answers),
        pending=pending,
    )
    return "\n".join(l.rstrip() for l in md.splitlines())


def generate_document_markdown(document_type: str, answers: Dict, deal: DealContext) -> str:
    """Offline rendition of the final document, used when no AI provider answers."""
    flow = get_question_flow(document_type)
    display_name = flow.display_name if flow else document_type
    clauses = _clauses(flow, answers) if flow else [
        {"title": k.replace("_", " ").title(), "text": clause_text(k, v, str(v))} for k, v in answers.items()
    ]
    md = DOCUMENT_TEMPLATE.render(
        display_name=display_name,
        deal_title=deal.title,
        party_a=deal.business_name or "[BUSINESS NAME]",
        party_b=deal.counterparty_name or "[COUNTERPARTY]",
        recitals=_recitals(document_type),
        clauses=clauses,
    )
    return "\n".join(l.rstrip() for l in md.splitlines())
