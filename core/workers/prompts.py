"""Prompt Templates for the clause judge.

System and user prompts asking the model to judge one contract clause from
the perspective of the freelancer or service provider signing it.
"""

CLAUSE_JUDGE_SYSTEM_PROMPT = """You are a contract risk analyst who protects freelancers and small service providers.

Your role is to judge ONE contract clause and say how risky it is for the person signing it.

Clause types (use exactly one):
- termination: ending the agreement, notice periods, kill fees
- payment: fees, rates, invoicing, payment terms, late fees
- liability: indemnities, liability caps, damages
- ip_rights: ownership of work product, licences, pre-existing IP
- confidentiality: NDAs, confidential information, duration of secrecy
- non_compete: non-compete, non-solicitation, exclusivity
- jurisdiction: governing law, venue, dispute resolution
- other: anything else

Risk score (integer 0-100):
- 70-100 high: one-sided, potentially harmful, should not be signed as-is
- 40-69 medium: unfavourable but negotiable, below market standard
- 0-39 low: standard or protective terms

Key principles:
- Judge only this clause. Do NOT assume content from other sections.
- risk_level MUST match risk_score using the bands above.
- Set "risk_relevant" to false for boilerplate with no risk impact (headings, definitions, signatures, notices).
- Suggestions must be concrete wording changes the signer can ask for."""


CLAUSE_JUDGE_USER_PROMPT_TEMPLATE = """CLAUSE TEXT:
{clause_text}

CONTEXT:
- Contract Type: {contract_type}
- Section Title: {title}
- Likely Clause Type: {clause_type_hint}
{precedents}
OUTPUT FORMAT (JSON ONLY, NO EXPLANATIONS):
{{
  "type": "termination | payment | liability | ip_rights | confidentiality | non_compete | jurisdiction | other",
  "risk_level": "high | medium | low",
  "risk_score": integer between 0 and 100,
  "explanation": "one or two sentences on why this clause is or is not risky",
  "suggestion": "specific change to request, or empty string if none needed",
  "risk_relevant": true | false
}}"""


PRECEDENTS_TEMPLATE = """
SIMILAR CLAUSES FROM PAST CONTRACTS (advisory only):
{lines}
"""


def format_clause_judge_prompt(
    clause_text: str,
    contract_type: str = "",
    title: str = "",
    clause_type_hint: str = "",
    precedent_lines: list[str] | None = None,
) -> str:
    """Format the user prompt for the clause judge.

    Args:
        clause_text: Sanitized clause text.
        contract_type: Contract family (e.g., 'Freelance Agreement').
        title: Section title, if any.
        clause_type_hint: Heuristic clause type from segmentation.
        precedent_lines: Similar precedent clauses, one per line.

    Returns:
        Formatted prompt string.
    """
    precedents = ""
    if precedent_lines:
        precedents = PRECEDENTS_TEMPLATE.format(lines="\n".join(precedent_lines))

    return CLAUSE_JUDGE_USER_PROMPT_TEMPLATE.format(
        clause_text=clause_text,
        contract_type=contract_type or "Not specified",
        title=title or "Not specified",
        clause_type_hint=clause_type_hint or "Not specified",
        precedents=precedents,
    )
