"""
Question flows for conversational document generation.

Each document type has a fixed, ordered list of questions. The conversation
engine walks the list one question at a time and stores the selected option
value under the question id.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..schemas import QuickOption


@dataclass(frozen=True)
class QuestionOption:
    label: str
    value: str
    description: Optional[str] = None

    def to_quick_option(self) -> QuickOption:
        return QuickOption(label=self.label, value=self.value, description=self.description)


@dataclass(frozen=True)
class Question:
    id: str
    question: str
    options: List[QuestionOption]
    help_text: str = ""

    @property
    def title(self) -> str:
        return self.id.replace("_", " ").title()

    def quick_options(self) -> List[QuickOption]:
        return [o.to_quick_option() for o in self.options]

    def find_option(self, value: str) -> Optional[QuestionOption]:
        for option in self.options:
            if option.value == value:
                return option
        return None


@dataclass(frozen=True)
class QuestionFlow:
    document_type: str
    display_name: str
    description: str
    questions: List[Question]
    required_fields: List[str] = field(default_factory=list)

    @property
    def acronym(self) -> Optional[str]:
        m = re.search(r"\(([^)]+)\)", self.display_name)
        return m.group(1) if m else None

    def question_at(self, index: int) -> Optional[Question]:
        if 0 <= index < len(self.questions):
            return self.questions[index]
        return None

    def first_unanswered(self, answers: Dict) -> int:
        for i, q in enumerate(self.questions):
            if answers.get(q.id) is None:
                return i
        return len(self.questions)

    def find_question(self, question_id: str) -> Optional[Question]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None


def _opt(label, value, description=None):
    return QuestionOption(label=label, value=value, description=description)


QUESTION_FLOWS: Dict[str, QuestionFlow] = {
    "Non-Disclosure Agreement": QuestionFlow(
        document_type="Non-Disclosure Agreement",
        display_name="Non-Disclosure Agreement (NDA)",
        description="Protect confidential information during deal discussions",
        required_fields=["nda_type", "duration", "scope"],
        questions=[
            Question(
                id="nda_type",
                question="Who will be sharing confidential information in this deal?",
                help_text="This determines whether the NDA protects one party or both.",
                options=[
                    _opt("Seller Only", "one-way-seller", "Seller shares info with buyer"),
                    _opt("Buyer Only", "one-way-buyer", "Buyer shares info with seller"),
                    _opt("Mutual", "mutual", "Both parties share confidential info"),
                ],
            ),
            Question(
                id="duration",
                question="How long should confidentiality obligations last after disclosure?",
                help_text="For M&A deals, 3-5 years is standard. Trade secrets may need perpetual protection.",
                options=[
                    _opt("2 Years", "2", "Shorter term, lower-risk info"),
                    _opt("3 Years", "3", "Standard for most M&A deals"),
                    _opt("5 Years", "5", "Higher value or sensitive info"),
                    _opt("Perpetual", "perpetual", "Trade secrets, never expires"),
                ],
            ),
            Question(
                id="scope",
                question="What type of confidential information will be shared?",
                help_text="This helps define what's protected under the NDA.",
                options=[
                    _opt("Financial Only", "financial", "Revenue, profits, projections"),
                    _opt("Business Operations", "operations", "Processes, suppliers, customers"),
                    _opt("Technical/IP", "technical", "Technology, trade secrets, patents"),
                    _opt("Comprehensive", "comprehensive", "All business information"),
                ],
            ),
            Question(
                id="carveouts",
                question="Include standard exceptions (carve-outs)?",
                help_text="Standard carve-outs protect against unreasonable claims.",
                options=[
                    _opt("Yes, Standard", "standard", "Public info, prior knowledge, legal requirements"),
                    _opt("Minimal", "minimal", "Only legally required exceptions"),
                    _opt("Expanded", "expanded", "Standard plus independent development"),
                ],
            ),
            Question(
                id="non_solicitation",
                question="Include non-solicitation of employees clause?",
                help_text="Prevents parties from poaching each other's staff during and after the deal.",
                options=[
                    _opt("Yes, 12 months", "12", "Standard protection period"),
                    _opt("Yes, 24 months", "24", "Extended protection"),
                    _opt("No", "none", "Not needed for this deal"),
                ],
            ),
        ],
    ),
    "Letter of Intent": QuestionFlow(
        document_type="Letter of Intent",
        display_name="Letter of Intent (LOI)",
        description="Non-binding outline of deal terms before formal agreement",
        required_fields=["binding_provisions", "exclusivity", "deal_structure"],
        questions=[
            Question(
                id="binding_provisions",
                question="Which provisions should be legally binding?",
                help_text="Most LOIs are non-binding except for specific clauses.",
                options=[
                    _opt("None (Non-binding)", "none", "Standard non-binding LOI"),
                    _opt("Confidentiality Only", "confidentiality", "Common choice if no NDA exists"),
                    _opt("Exclusivity Only", "exclusivity", "Lock in deal negotiations"),
                    _opt("Both", "both", "Confidentiality and exclusivity binding"),
                ],
            ),
            Question(
                id="exclusivity",
                question="Include an exclusivity (no-shop) period?",
                help_text="Prevents seller from negotiating with other buyers.",
                options=[
                    _opt("30 Days", "30", "Quick due diligence expected"),
                    _opt("60 Days", "60", "Standard for most deals"),
                    _opt("90 Days", "90", "Complex due diligence needed"),
                    _opt("No Exclusivity", "none", "Seller keeps options open"),
                ],
            ),
            Question(
                id="deal_structure",
                question="What is the proposed deal structure?",
                help_text="This affects the key terms section of the LOI.",
                options=[
                    _opt("Asset Purchase", "asset", "Buying specific assets"),
                    _opt("Share Purchase", "share", "Buying company shares/equity"),
                    _opt("Business Sale", "business", "Entire business transfer"),
                    _opt("To Be Determined", "tbd", "Structure still being decided"),
                ],
            ),
            Question(
                id="conditions",
                question="Key conditions precedent to include?",
                help_text="These must be satisfied before the deal can close.",
                options=[
                    _opt("Due Diligence Only", "dd", "Standard condition"),
                    _opt("DD + Financing", "dd_financing", "Buyer needs funding approval"),
                    _opt("DD + Board Approval", "dd_board", "Requires board sign-off"),
                    _opt("Comprehensive", "comprehensive", "DD, financing, approvals, third-party consents"),
                ],
            ),
            Question(
                id="deposit",
                question="Include a deposit or earnest money provision?",
                help_text="Shows buyer commitment and may be forfeited if buyer walks away.",
                options=[
                    _opt("No Deposit", "none", "No upfront payment"),
                    _opt("Refundable Deposit", "refundable", "Returned if deal doesn't proceed"),
                    _opt("Non-refundable Deposit", "non_refundable", "Forfeited if buyer backs out"),
                ],
            ),
        ],
    ),
    "Asset Purchase Agreement": QuestionFlow(
        document_type="Asset Purchase Agreement",
        display_name="Asset Purchase Agreement",
        description="Formal agreement for purchasing specific business assets",
        required_fields=["asset_types", "payment_structure", "warranties"],
        questions=[
            Question(
                id="asset_types",
                question="What types of assets are being purchased?",
                help_text="This determines which schedules and representations are needed.",
                options=[
                    _opt("Tangible Only", "tangible", "Equipment, inventory, property"),
                    _opt("Intangible Only", "intangible", "IP, goodwill, contracts"),
                    _opt("Both", "both", "Full asset acquisition"),
                    _opt("Going Concern", "going_concern", "Business as operating entity"),
                ],
            ),
            Question(
                id="payment_structure",
                question="How will the purchase price be paid?",
                help_text="Payment structure affects security and risk allocation.",
                options=[
                    _opt("Cash at Closing", "cash", "Full payment on completion"),
                    _opt("Deferred Payment", "deferred", "Paid in instalments"),
                    _opt("Earnout", "earnout", "Based on future performance"),
                    _opt("Combination", "combination", "Cash + deferred + earnout"),
                ],
            ),
            Question(
                id="warranties",
                question="What level of seller warranties do you need?",
                help_text="More warranties = more protection but harder negotiations.",
                options=[
                    _opt("Basic", "basic", "Title, authority, no encumbrances"),
                    _opt("Standard", "standard", "Basic + financials, compliance"),
                    _opt("Comprehensive", "comprehensive", "Full representations package"),
                    _opt("Minimal (As-Is)", "minimal", "Limited warranties, buyer beware"),
                ],
            ),
            Question(
                id="employees",
                question="Will employees transfer with the assets?",
                help_text="Employee transfer has legal and practical implications.",
                options=[
                    _opt("All Employees", "all", "Full workforce transfer"),
                    _opt("Key Employees Only", "key", "Selected critical staff"),
                    _opt("No Employees", "none", "Assets only"),
                    _opt("Buyer's Choice", "choice", "Buyer selects who transfers"),
                ],
            ),
            Question(
                id="non_compete",
                question="Include a seller non-compete clause?",
                help_text="Prevents seller from competing with the business after sale.",
                options=[
                    _opt("Yes, 2 Years", "2", "Standard protection"),
                    _opt("Yes, 3 Years", "3", "Extended protection"),
                    _opt("Yes, 5 Years", "5", "Maximum protection"),
                    _opt("No", "none", "No restriction on seller"),
                ],
            ),
        ],
    ),
    "Share Purchase Agreement": QuestionFlow(
        document_type="Share Purchase Agreement",
        display_name="Share Purchase Agreement",
        description="Agreement for purchasing shares/equity in a company",
        required_fields=["share_percentage", "payment_terms", "warranty_level"],
        questions=[
            Question(
                id="share_percentage",
                question="What percentage of shares is being purchased?",
                help_text="This affects control rights and required protections.",
                options=[
                    _opt("100% (Full Acquisition)", "100", "Complete ownership transfer"),
                    _opt("Majority (51-99%)", "majority", "Control but existing shareholders"),
                    _opt("Significant Minority (25-50%)", "significant", "Blocking rights typical"),
                    _opt("Minority (<25%)", "minority", "Limited control rights"),
                ],
            ),
            Question(
                id="payment_terms",
                question="Payment structure for the shares?",
                help_text="How will the purchase consideration be paid?",
                options=[
                    _opt("Cash at Completion", "cash", "Full payment on closing"),
                    _opt("Staged Payments", "staged", "Multiple tranches"),
                    _opt("Share Swap", "swap", "Buyer shares as consideration"),
                    _opt("Mixed Consideration", "mixed", "Cash + shares + deferred"),
                ],
            ),
            Question(
                id="warranty_level",
                question="Level of warranties and indemnities?",
                help_text="Higher protection means more complex negotiations.",
                options=[
                    _opt("Title Only", "title", "Seller owns shares, can transfer"),
                    _opt("Standard Package", "standard", "Title + business warranties"),
                    _opt("Full W&I", "full", "Comprehensive warranty schedule"),
                    _opt("W&I Insurance", "insurance", "Backed by insurance policy"),
                ],
            ),
            Question(
                id="completion_accounts",
                question="How will the purchase price be adjusted?",
                help_text="Method for adjusting price based on actual vs. expected value.",
                options=[
                    _opt("Locked Box", "locked_box", "Fixed price, no adjustment"),
                    _opt("Completion Accounts", "completion", "Adjusted for working capital"),
                    _opt("Earn-Out", "earnout", "Based on future performance"),
                    _opt("Hybrid", "hybrid", "Base + earnout component"),
                ],
            ),
            Question(
                id="post_completion",
                question="Post-completion restrictions on seller?",
                help_text="Protections after the deal closes.",
                options=[
                    _opt("Standard", "standard", "Non-compete + non-solicit"),
                    _opt("Enhanced", "enhanced", "Standard + transition services"),
                    _opt("Minimal", "minimal", "Basic obligations only"),
                    _opt("None", "none", "No post-completion restrictions"),
                ],
            ),
        ],
    ),
    "Employment Contract": QuestionFlow(
        document_type="Employment Contract",
        display_name="Employment Contract",
        description="Contract for key employee as part of business transaction",
        required_fields=["role_type", "term", "compensation"],
        questions=[
            Question(
                id="role_type",
                question="What is the nature of this employment?",
                help_text="Determines the structure and required clauses.",
                options=[
                    _opt("Executive/Director", "executive", "Senior leadership role"),
                    _opt("Key Employee", "key", "Critical operational role"),
                    _opt("Retained Seller", "seller", "Seller staying post-acquisition"),
                    _opt("General Employee", "general", "Standard employment terms"),
                ],
            ),
            Question(
                id="term",
                question="What is the employment term?",
                help_text="Fixed term provides certainty; ongoing provides flexibility.",
                options=[
                    _opt("Ongoing", "ongoing", "Permanent employment"),
                    _opt("12 Months Fixed", "12", "One year initial term"),
                    _opt("24 Months Fixed", "24", "Two year commitment"),
                    _opt("36 Months Fixed", "36", "Three year lock-in"),
                ],
            ),
            Question(
                id="compensation",
                question="Compensation structure?",
                help_text="How will the employee be rewarded?",
                options=[
                    _opt("Salary Only", "salary", "Fixed remuneration"),
                    _opt("Salary + Bonus", "bonus", "Base + performance bonus"),
                    _opt("Salary + Equity", "equity", "Base + share options/rights"),
                    _opt("Full Package", "full", "Salary + bonus + equity"),
                ],
            ),
            Question(
                id="restraints",
                question="Post-employment restraints?",
                help_text="Restrictions after employment ends.",
                options=[
                    _opt("Standard", "standard", "Non-compete 12 months"),
                    _opt("Enhanced", "enhanced", "Non-compete + non-solicit 24 months"),
                    _opt("Minimal", "minimal", "Confidentiality only"),
                    _opt("None", "none", "No restraints"),
                ],
            ),
            Question(
                id="termination",
                question="Termination notice period?",
                help_text="Notice required to end the employment.",
                options=[
                    _opt("2 Weeks", "2w", "Minimum statutory"),
                    _opt("4 Weeks", "4w", "Standard notice"),
                    _opt("3 Months", "3m", "Executive standard"),
                    _opt("6 Months", "6m", "Senior executive"),
                ],
            ),
        ],
    ),
    "Service Agreement": QuestionFlow(
        document_type="Service Agreement",
        display_name="Service Agreement",
        description="Agreement for professional or consulting services",
        required_fields=["service_type", "term", "payment"],
        questions=[
            Question(
                id="service_type",
                question="What type of services will be provided?",
                help_text="This determines the scope and deliverables section.",
                options=[
                    _opt("Consulting", "consulting", "Advisory services"),
                    _opt("Professional Services", "professional", "Technical/specialized work"),
                    _opt("Transition Services", "transition", "Post-acquisition support"),
                    _opt("Managed Services", "managed", "Ongoing operational support"),
                ],
            ),
            Question(
                id="term",
                question="Service agreement duration?",
                help_text="How long will services be provided?",
                options=[
                    _opt("3 Months", "3", "Short-term engagement"),
                    _opt("6 Months", "6", "Medium-term project"),
                    _opt("12 Months", "12", "Annual agreement"),
                    _opt("Project-Based", "project", "Until completion"),
                ],
            ),
            Question(
                id="payment",
                question="Payment structure?",
                help_text="How will services be paid for?",
                options=[
                    _opt("Fixed Fee", "fixed", "Agreed total amount"),
                    _opt("Time & Materials", "tm", "Hourly/daily rates"),
                    _opt("Retainer", "retainer", "Monthly fixed amount"),
                    _opt("Milestone-Based", "milestone", "Payment on deliverables"),
                ],
            ),
            Question(
                id="ip_ownership",
                question="Who owns work product and IP?",
                help_text="Important for any deliverables created.",
                options=[
                    _opt("Client Owns All", "client", "Full ownership transfer"),
                    _opt("Provider Retains", "provider", "License to client"),
                    _opt("Shared", "shared", "Joint ownership"),
                    _opt("Background + Foreground Split", "split", "Pre-existing vs. new IP"),
                ],
            ),
            Question(
                id="liability",
                question="Liability cap?",
                help_text="Maximum provider liability for claims.",
                options=[
                    _opt("Fees Paid", "fees", "Limited to fees paid"),
                    _opt("Annual Fees", "annual", "One year of fees"),
                    _opt("Fixed Cap", "fixed", "Specific dollar amount"),
                    _opt("Unlimited", "unlimited", "No cap on liability"),
                ],
            ),
        ],
    ),
    "Terms and Conditions": QuestionFlow(
        document_type="Terms and Conditions",
        display_name="Terms and Conditions",
        description="Standard terms for products or services",
        required_fields=["business_type", "payment_terms", "liability"],
        questions=[
            Question(
                id="business_type",
                question="What does the business sell?",
                help_text="This determines which clauses are needed.",
                options=[
                    _opt("Physical Products", "products", "Goods, inventory"),
                    _opt("Digital Products", "digital", "Software, downloads"),
                    _opt("Services", "services", "Professional services"),
                    _opt("Mixed", "mixed", "Products and services"),
                ],
            ),
            Question(
                id="payment_terms",
                question="Standard payment terms?",
                help_text="When payment is due.",
                options=[
                    _opt("Upfront", "upfront", "Payment before delivery"),
                    _opt("14 Days", "14", "Two weeks from invoice"),
                    _opt("30 Days", "30", "Standard net 30"),
                    _opt("60 Days", "60", "Extended terms"),
                ],
            ),
            Question(
                id="returns",
                question="Returns/refund policy?",
                help_text="Customer rights for returns.",
                options=[
                    _opt("ACL Only", "acl", "Australian Consumer Law minimum"),
                    _opt("14 Days No Questions", "14_days", "Generous returns"),
                    _opt("30 Days Store Credit", "30_credit", "Credit only"),
                    _opt("No Returns", "none", "Final sale (where permitted)"),
                ],
            ),
            Question(
                id="liability",
                question="Liability limitations?",
                help_text="Extent of business liability to customers.",
                options=[
                    _opt("ACL Minimum", "acl", "Cannot exclude consumer guarantees"),
                    _opt("Standard Commercial", "commercial", "Reasonable exclusions"),
                    _opt("Comprehensive", "comprehensive", "Maximum protection"),
                ],
            ),
            Question(
                id="disputes",
                question="Dispute resolution process?",
                help_text="How disputes will be handled.",
                options=[
                    _opt("Negotiation First", "negotiation", "Informal resolution"),
                    _opt("Mediation Required", "mediation", "Before litigation"),
                    _opt("Arbitration", "arbitration", "Binding arbitration"),
                    _opt("Court Only", "court", "Direct to courts"),
                ],
            ),
        ],
    ),
}


def normalize_text(text: str) -> str:
    t = (text or "").lower().replace("&", "and")
    t = re.sub(r"\([^)]*\)", " ", t)  # parenthetical acronyms like (NDA)
    t = re.sub(r"[^a-z0-9\s]", " ", t)
    return re.sub(r"\s+", " ", t).strip()


def get_question_flow(document_type: Optional[str]) -> Optional[QuestionFlow]:
    if not document_type:
        return None
    return QUESTION_FLOWS.get(document_type)


def available_document_types() -> List[QuestionFlow]:
    return list(QUESTION_FLOWS.values())


def document_type_options() -> List[QuickOption]:
    return [
        QuickOption(label=f.display_name, value=f.document_type, description=f.description)
        for f in QUESTION_FLOWS.values()
    ]


def match_document_type(message: str) -> Optional[QuestionFlow]:
    """Match free text against type ids, display names and acronyms."""
    msg = normalize_text(message)
    if not msg:
        return None
    for flow in QUESTION_FLOWS.values():
        type_norm = normalize_text(flow.document_type)
        display_norm = normalize_text(flow.display_name)
        if msg == type_norm or type_norm in msg:
            return flow
        # partial names like "purchase agreement" only count past a couple of letters
        if len(msg) >= 3 and msg in type_norm:
            return flow
        if msg == display_norm or (display_norm and display_norm in msg):
            return flow
        acronym = flow.acronym
        if acronym and msg == normalize_text(acronym):
            return flow
    return None


def match_option(message: str, question: Question) -> Optional[QuestionOption]:
    """Match a reply against a question's options by label, value or 1-based number."""
    msg = (message or "").lower().strip()
    if not msg:
        return None
    for option in question.options:
        if msg == option.value.lower() or msg == option.label.lower():
            return option
    for option in question.options:
        if option.label.lower() in msg or option.value.lower() in msg:
            return option
    m = re.match(r"^(\d+)\.?$", msg)
    if m:
        index = int(m.group(1)) - 1
        if 0 <= index < len(question.options):
            return question.options[index]
    return None


def is_ready_to_generate(document_type: Optional[str], gathered_answers: Dict) -> bool:
    flow = get_question_flow(document_type)
    if not flow:
        return False
    return all(gathered_answers.get(f) is not None for f in flow.required_fields)


def format_answers_for_generation(document_type: str, gathered_answers: Dict) -> str:
    flow = get_question_flow(document_type)
    if not flow:
        return "\n".join(f"- {k}: {v}" for k, v in gathered_answers.items())
    lines = [f"DOCUMENT TYPE: {flow.display_name}", "", "USER REQUIREMENTS:"]
    for question in flow.questions:
        answer = gathered_answers.get(question.id)
        if not answer:
            continue
        option = question.find_option(answer)
        line = f"  Answer: {option.label if option else answer}"
        if option and option.description:
            line += f" ({option.description})"
        lines.append(f"- {question.question}")
        lines.append(line)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
