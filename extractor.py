import asyncio
import logging
from dataclasses import fields, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import llm
from models import ExtractedProfile, StartupRecord, SupplementaryDocument, TeamMember, coerce_stage

logger = logging.getLogger(__name__)

Completion = Callable[[str], Awaitable[str]]

# LLM output key -> ExtractedProfile field
_TEXT_FIELDS = {
    "companyName": "company_name",
    "problem": "problem",
    "solution": "solution",
    "market": "market",
    "businessModel": "business_model",
    "traction": "traction",
    "askAmount": "ask_amount",
    "useOfFunds": "use_of_funds",
    "websiteUrl": "website_url",
    "location": "location",
}

EXTRACTION_PROMPT = """Analyze this pitch deck content and extract structured information. Return a JSON object with the following fields:

{{
  "companyName": "The company name",
  "problem": "The problem being solved",
  "solution": "The solution/product",
  "market": "Target market and market size",
  "businessModel": "How the company makes money",
  "traction": "Current traction, metrics, customers",
  "team": [
    {{
      "name": "Team member name",
      "role": "Their role/title",
      "linkedinUrl": "LinkedIn URL if mentioned",
      "background": "Brief background"
    }}
  ],
  "competitors": ["List of competitors"],
  "askAmount": "Funding amount being raised",
  "useOfFunds": "How funds will be used",
  "websiteUrl": "Company website if mentioned",
  "industries": ["Relevant industries/sectors"],
  "stage": "Company stage (Pre-seed, Seed, Series A, etc.)",
  "location": "Company location if mentioned"
}}

Pitch deck content:
{deck_text}

Return ONLY valid JSON, no explanations."""

ENRICHMENT_PROMPT = """Given the founder/team member "{name}" who works as "{role}" with background "{background}", generate a brief professional profile summary. Return JSON:
{{
  "headline": "Professional headline",
  "experience": ["Previous relevant experience"],
  "education": ["Education background"],
  "skills": ["Key skills"]
}}
Return ONLY valid JSON."""


def build_deck_text(deck_text: str, documents: Optional[Sequence[SupplementaryDocument]] = None) -> str:
    """Primary deck text followed by each supplementary document under its own label."""
    parts = []
    if deck_text and deck_text.strip():
        parts.append("=== PITCH DECK ===\n" + deck_text.strip())
    for doc in documents or []:
        if not doc.text or not doc.text.strip():
            continue
        label = (doc.type or "document").replace("_", " ").upper()
        parts.append(f"=== {label}: {doc.name} ===\n{doc.text.strip()}")
    return "\n\n".join(parts)


def _clean_text(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _clean_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    seen: List[str] = []
    for item in value:
        text = _clean_text(item)
        if text and text.lower() not in {s.lower() for s in seen}:
            seen.append(text)
    return seen


def parse_extracted_profile(raw: Dict[str, Any]) -> ExtractedProfile:
    """Build a profile from the model's JSON; wrong-typed values become 'no signal'."""
    if not isinstance(raw, dict):
        return ExtractedProfile()

    data: Dict[str, Any] = {attr: _clean_text(raw.get(key)) for key, attr in _TEXT_FIELDS.items()}
    data["industries"] = _clean_list(raw.get("industries"))
    data["competitors"] = _clean_list(raw.get("competitors"))
    data["stage"] = coerce_stage(raw.get("stage"))

    team = []
    for member in raw.get("team") or []:
        if not isinstance(member, dict):
            continue
        team.append(TeamMember(
            name=_clean_text(member.get("name")),
            role=_clean_text(member.get("role")),
            linkedin_url=_clean_text(member.get("linkedinUrl")),
            background=_clean_text(member.get("background")),
        ))
    data["team"] = team if isinstance(raw.get("team"), list) else []
    return ExtractedProfile(**data)


async def analyze_deck(deck_text: str, complete: Completion = llm.complete) -> ExtractedProfile:
    """
    One completion call over the full deck text.

    Errors raised by the completion call propagate to the caller.
    Responses without usable JSON give an empty profile.
    """
    response = await complete(EXTRACTION_PROMPT.format(deck_text=deck_text))
    profile = parse_extracted_profile(llm.extract_json_object(response))
    if profile.is_empty():
        logger.warning("Deck extraction produced no usable fields")
    return profile


def merge_with_startup(extracted: ExtractedProfile, startup: Optional[StartupRecord]) -> ExtractedProfile:
    """Extracted values win; the linked startup only fills fields left empty."""
    if startup is None:
        return extracted
    stored = startup.as_profile()
    gaps = {}
    for f in fields(ExtractedProfile):
        current = getattr(extracted, f.name)
        if current in (None, "", []):
            backfill = getattr(stored, f.name)
            if backfill not in (None, "", []):
                gaps[f.name] = backfill
    return replace(extracted, **gaps) if gaps else extracted


async def _enrich_member(member: TeamMember, complete: Completion) -> TeamMember:
    if not member.name:
        return member
    prompt = ENRICHMENT_PROMPT.format(
        name=member.name,
        role=member.role or "team member",
        background=member.background or "not specified",
    )
    data = llm.extract_json_object(await complete(prompt))
    if not data:
        return member
    enrichment = {key: data.get(key) for key in ("headline", "experience", "education", "skills")}
    return replace(member, enrichment=enrichment)


async def enrich_team(team: Sequence[TeamMember], complete: Completion = llm.complete) -> List[TeamMember]:
    """Enrich every member concurrently; a failed member is returned unchanged."""
    results = await asyncio.gather(*(_enrich_member(m, complete) for m in team), return_exceptions=True)
    enriched = []
    for member, result in zip(team, results):
        if isinstance(result, BaseException):
            logger.warning("Team enrichment failed for %s: %s", member.name, result)
            enriched.append(member)
        else:
            enriched.append(result)
    return enriched
