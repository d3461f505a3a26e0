"""Risk Taxonomy for freelance and service contracts.

This module defines the keyword vocabulary, red-flag catalogue and
normalisation helpers shared by the segmenter, the classifier backends and
the aggregator.

Usage:
    from core.utils.risk_taxonomy import normalize_clause_type, guess_clause_type
    from core.utils.risk_taxonomy import FREELANCE_RED_FLAGS, detect_contract_type
"""

import re
from dataclasses import dataclass

from app.models.analysis import ContractType
from app.models.clause import ClauseType, RiskLevel


# Mapping of keywords to clause types (checked in order, first hit wins)
CLAUSE_KEYWORDS: dict[str, ClauseType] = {
    "non-compete": ClauseType.NON_COMPETE,
    "non compete": ClauseType.NON_COMPETE,
    "noncompete": ClauseType.NON_COMPETE,
    "non-solicit": ClauseType.NON_COMPETE,
    "restrictive covenant": ClauseType.NON_COMPETE,
    "not compete": ClauseType.NON_COMPETE,
    "competing": ClauseType.NON_COMPETE,
    "terminat": ClauseType.TERMINATION,
    "cancel": ClauseType.TERMINATION,
    "kill fee": ClauseType.TERMINATION,
    "intellectual property": ClauseType.IP_RIGHTS,
    "work made for hire": ClauseType.IP_RIGHTS,
    "work for hire": ClauseType.IP_RIGHTS,
    "copyright": ClauseType.IP_RIGHTS,
    "ownership": ClauseType.IP_RIGHTS,
    "patent": ClauseType.IP_RIGHTS,
    "trademark": ClauseType.IP_RIGHTS,
    "deliverables shall be owned": ClauseType.IP_RIGHTS,
    "confidential": ClauseType.CONFIDENTIALITY,
    "non-disclosure": ClauseType.CONFIDENTIALITY,
    "proprietary information": ClauseType.CONFIDENTIALITY,
    "trade secret": ClauseType.CONFIDENTIALITY,
    "indemnif": ClauseType.LIABILITY,
    "hold harmless": ClauseType.LIABILITY,
    "liabil": ClauseType.LIABILITY,
    "damages": ClauseType.LIABILITY,
    "warrant": ClauseType.LIABILITY,
    "governing law": ClauseType.JURISDICTION,
    "jurisdiction": ClauseType.JURISDICTION,
    "venue": ClauseType.JURISDICTION,
    "arbitrat": ClauseType.JURISDICTION,
    "courts of": ClauseType.JURISDICTION,
    "dispute": ClauseType.JURISDICTION,
    "payment": ClauseType.PAYMENT,
    "invoice": ClauseType.PAYMENT,
    "compensat": ClauseType.PAYMENT,
    " fee": ClauseType.PAYMENT,
    "hourly rate": ClauseType.PAYMENT,
    "paid": ClauseType.PAYMENT,
}

# Loose spellings a model may return for each clause type
CLAUSE_TYPE_ALIASES: dict[str, ClauseType] = {
    "payment_terms": ClauseType.PAYMENT,
    "compensation": ClauseType.PAYMENT,
    "fees": ClauseType.PAYMENT,
    "intellectual_property": ClauseType.IP_RIGHTS,
    "ip": ClauseType.IP_RIGHTS,
    "ip_ownership": ClauseType.IP_RIGHTS,
    "ownership": ClauseType.IP_RIGHTS,
    "limitation_of_liability": ClauseType.LIABILITY,
    "indemnification": ClauseType.LIABILITY,
    "indemnity": ClauseType.LIABILITY,
    "governing_law": ClauseType.JURISDICTION,
    "dispute_resolution": ClauseType.JURISDICTION,
    "venue": ClauseType.JURISDICTION,
    "noncompete": ClauseType.NON_COMPETE,
    "non_solicitation": ClauseType.NON_COMPETE,
    "restrictive_covenant": ClauseType.NON_COMPETE,
    "nda": ClauseType.CONFIDENTIALITY,
    "non_disclosure": ClauseType.CONFIDENTIALITY,
    "cancellation": ClauseType.TERMINATION,
}

CONTRACT_TYPE_KEYWORDS: list[tuple[str, ContractType]] = [
    ("non-disclosure agreement", ContractType.NDA),
    ("nondisclosure agreement", ContractType.NDA),
    ("confidentiality agreement", ContractType.NDA),
    ("freelance", ContractType.FREELANCE_AGREEMENT),
    ("independent contractor", ContractType.FREELANCE_AGREEMENT),
    ("contractor agreement", ContractType.FREELANCE_AGREEMENT),
    ("consulting agreement", ContractType.FREELANCE_AGREEMENT),
    ("employment agreement", ContractType.EMPLOYMENT_CONTRACT),
    ("employment contract", ContractType.EMPLOYMENT_CONTRACT),
    ("employee", ContractType.EMPLOYMENT_CONTRACT),
    ("service agreement", ContractType.SERVICE_AGREEMENT),
    ("services agreement", ContractType.SERVICE_AGREEMENT),
    ("statement of work", ContractType.SERVICE_AGREEMENT),
    ("master services", ContractType.SERVICE_AGREEMENT),
]


@dataclass(frozen=True)
class RedFlag:
    """A known unfavourable pattern for the service provider."""
    name: str
    clause_type: ClauseType
    pattern: str
    risk_score: int
    explanation: str
    suggestion: str


@dataclass(frozen=True)
class Protection:
    """A known protective pattern for the service provider."""
    name: str
    clause_type: ClauseType
    pattern: str
    explanation: str


FREELANCE_RED_FLAGS: list[RedFlag] = [
    RedFlag(
        name="At-will termination without notice",
        clause_type=ClauseType.TERMINATION,
        pattern=r"terminat\w*.{0,80}\b(at will|at any time|for any reason|without (prior )?notice|immediately)",
        risk_score=85,
        explanation="The client can end the engagement instantly, leaving you unpaid for work in progress.",
        suggestion="Require at least 14 days written notice and payment for all work completed up to termination.",
    ),
    RedFlag(
        name="No kill fee",
        clause_type=ClauseType.TERMINATION,
        pattern=r"(no|without)\s+(kill fee|compensation).{0,60}terminat|terminat\w*.{0,80}(no|without)\s+(further )?(payment|compensation|liability)",
        risk_score=75,
        explanation="Termination leaves no compensation for cancelled work.",
        suggestion="Add a kill fee of 25-50% of the remaining project value.",
    ),
    RedFlag(
        name="Long payment terms",
        clause_type=ClauseType.PAYMENT,
        pattern=r"\b(net|within)\s*[-\s]?(60|75|90|120)\b|\b(60|75|90|120)\s*days\b.{0,40}(invoice|payment|pay)",
        risk_score=60,
        explanation="Payment arrives two or more months after invoicing, straining your cash flow.",
        suggestion="Negotiate Net 15 or Net 30 payment terms with a late fee for overdue invoices.",
    ),
    RedFlag(
        name="Payment at client's discretion",
        clause_type=ClauseType.PAYMENT,
        pattern=r"(sole|absolute) discretion.{0,80}(pay|payment|fee|compensat)|(pay|payment).{0,80}(sole|absolute) discretion|upon (client'?s )?satisfaction",
        risk_score=80,
        explanation="Payment depends on a subjective judgement the client controls.",
        suggestion="Tie payment to objective acceptance criteria and a fixed review period.",
    ),
    RedFlag(
        name="Unlimited liability",
        clause_type=ClauseType.LIABILITY,
        pattern=r"(unlimited|without limit\w*|any and all).{0,60}(liab|damages|losses|claims)|indemnif\w*.{0,120}(any and all|all claims|whatsoever)",
        risk_score=85,
        explanation="Your exposure is uncapped and may exceed the value of the contract many times over.",
        suggestion="Cap total liability at the fees paid under this agreement and exclude consequential damages.",
    ),
    RedFlag(
        name="All IP transferred including pre-existing work",
        clause_type=ClauseType.IP_RIGHTS,
        pattern=r"(pre-?existing|prior|background).{0,80}(assign|transfer|become the (sole )?property)|(all|any) (intellectual property|work product|inventions).{0,80}(whether or not|including).{0,60}(outside|prior|pre-?existing)",
        risk_score=80,
        explanation="The clause captures tools and work you created before or outside this engagement.",
        suggestion="Limit the assignment to deliverables created for this project and license pre-existing materials instead.",
    ),
    RedFlag(
        name="IP transfers before payment",
        clause_type=ClauseType.IP_RIGHTS,
        pattern=r"work (made )?for hire|(assign|transfer)\w*.{0,60}(upon creation|immediately)",
        risk_score=55,
        explanation="Ownership passes to the client before you have been paid.",
        suggestion="Transfer ownership only upon receipt of full payment.",
    ),
    RedFlag(
        name="Broad non-compete",
        clause_type=ClauseType.NON_COMPETE,
        pattern=r"(shall not|will not|may not|agrees not to).{0,80}(compete|provide (similar )?services|work for|engage).{0,120}(\d+\s*(year|month)s?|worldwide|any (client|company|business))",
        risk_score=80,
        explanation="The restriction limits your ability to earn a living from other clients.",
        suggestion="Narrow the restriction to named direct competitors for no more than 6 months, or remove it.",
    ),
    RedFlag(
        name="Perpetual confidentiality",
        clause_type=ClauseType.CONFIDENTIALITY,
        pattern=r"(perpetual|indefinite(ly)?|in perpetuity|forever|survive[s]? .{0,20}indefinitely)",
        risk_score=45,
        explanation="Confidentiality obligations never expire and may cover information that becomes public.",
        suggestion="Limit confidentiality to 2-3 years after termination and carve out publicly available information.",
    ),
    RedFlag(
        name="Distant or one-sided jurisdiction",
        clause_type=ClauseType.JURISDICTION,
        pattern=r"(exclusive(ly)?|sole).{0,40}(jurisdiction|venue|courts)|client'?s (home )?(state|country|jurisdiction)",
        risk_score=50,
        explanation="Disputes must be brought in a forum chosen by the client, which may be costly to reach.",
        suggestion="Agree on your local jurisdiction, a neutral venue, or remote arbitration.",
    ),
    RedFlag(
        name="Unlimited revisions",
        clause_type=ClauseType.OTHER,
        pattern=r"(unlimited|unrestricted) (revisions|changes|amendments)|revisions? until .{0,30}satisf",
        risk_score=65,
        explanation="The scope can expand without additional pay.",
        suggestion="Specify a fixed number of revision rounds and an hourly rate for additional changes.",
    ),
]

FREELANCE_PROTECTIONS: list[Protection] = [
    Protection(
        name="Prompt payment terms",
        clause_type=ClauseType.PAYMENT,
        pattern=r"\b(net|within)\s*[-\s]?(7|10|14|15|30)\b",
        explanation="Payment is due within 30 days of invoicing.",
    ),
    Protection(
        name="Late payment fee",
        clause_type=ClauseType.PAYMENT,
        pattern=r"late (fee|payment|charge)|interest .{0,30}overdue",
        explanation="Overdue invoices accrue a late fee.",
    ),
    Protection(
        name="Mutual termination with notice",
        clause_type=ClauseType.TERMINATION,
        pattern=r"either party may terminate.{0,80}(\d+|thirty|fourteen|fifteen|seven)\s*(\(\d+\)\s*)?days",
        explanation="Either party may terminate with advance written notice.",
    ),
    Protection(
        name="Liability cap",
        clause_type=ClauseType.LIABILITY,
        pattern=r"(shall not exceed|limited to|capped at).{0,60}(fees|amount paid|contract value)",
        explanation="Liability is capped at the fees paid.",
    ),
    Protection(
        name="IP transfers upon payment",
        clause_type=ClauseType.IP_RIGHTS,
        pattern=r"upon (receipt of )?(full )?payment.{0,80}(assign|transfer|own)|(assign|transfer|own)\w*.{0,80}upon (receipt of )?(full )?payment",
        explanation="Ownership transfers only after full payment.",
    ),
    Protection(
        name="Portfolio rights",
        clause_type=ClauseType.IP_RIGHTS,
        pattern=r"portfolio",
        explanation="You may show the work in your portfolio.",
    ),
    Protection(
        name="Time-limited confidentiality",
        clause_type=ClauseType.CONFIDENTIALITY,
        pattern=r"(\d+|two|three|five)\s*(\(\d+\)\s*)?years? (after|following|from)",
        explanation="Confidentiality obligations expire after a fixed period.",
    ),
]

_COMPILED_RED_FLAGS = [(flag, re.compile(flag.pattern, re.IGNORECASE | re.DOTALL)) for flag in FREELANCE_RED_FLAGS]
_COMPILED_PROTECTIONS = [
    (protection, re.compile(protection.pattern, re.IGNORECASE | re.DOTALL))
    for protection in FREELANCE_PROTECTIONS
]


def match_red_flags(text: str) -> list[RedFlag]:
    """Return every red flag whose pattern occurs in ``text``."""
    return [flag for flag, pattern in _COMPILED_RED_FLAGS if pattern.search(text)]


def match_protections(text: str) -> list[Protection]:
    """Return every protective pattern that occurs in ``text``."""
    return [p for p, pattern in _COMPILED_PROTECTIONS if pattern.search(text)]


def guess_clause_type(title: str, text: str) -> ClauseType:
    """Classify a clause based on its title and content.

    Args:
        title: Section title (may be empty).
        text: Full clause text.

    Returns:
        Best keyword match, ``ClauseType.OTHER`` if nothing matches.
    """
    # Title has priority over body
    title_lower = title.lower()
    for keyword, clause_type in CLAUSE_KEYWORDS.items():
        if keyword in title_lower:
            return clause_type

    content_lower = text[:500].lower()
    for keyword, clause_type in CLAUSE_KEYWORDS.items():
        if keyword in content_lower:
            return clause_type

    return ClauseType.OTHER


def detect_contract_type(text: str) -> ContractType:
    """Detect the contract family from keywords in the opening of the text."""
    head = text[:3000].lower()
    for keyword, contract_type in CONTRACT_TYPE_KEYWORDS:
        if keyword in head:
            return contract_type
    return ContractType.OTHER


def normalize_clause_type(value: str) -> ClauseType:
    """Normalize a clause type string to a valid enum value.

    Raises:
        ValueError: If the value does not map onto the closed enumeration.
    """
    if not isinstance(value, str):
        raise ValueError(f"Clause type must be a string, got {type(value).__name__}")

    normalized = value.lower().strip().replace(" ", "_").replace("-", "_")
    try:
        return ClauseType(normalized)
    except ValueError:
        pass

    if normalized in CLAUSE_TYPE_ALIASES:
        return CLAUSE_TYPE_ALIASES[normalized]

    raise ValueError(f"Unknown clause type: {value!r}")


def normalize_risk_level(value: str) -> RiskLevel | None:
    """Normalize a risk level string; returns None if unrecognisable."""
    value = str(value).lower().strip()

    try:
        return RiskLevel(value)
    except ValueError:
        pass

    # Best-effort mapping
    if "critical" in value or "severe" in value or "high" in value or "major" in value:
        return RiskLevel.HIGH
    if "medium" in value or "moderate" in value:
        return RiskLevel.MEDIUM
    if "low" in value or "minor" in value:
        return RiskLevel.LOW
    return None
