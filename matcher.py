from typing import List, Optional, Tuple

from models import ExtractedProfile, FirmProfile, InvestorProfile
from taxonomy import match_industry

INVESTOR_WEIGHTS = {"industry": 35, "stage": 25, "geography": 20, "activity": 10, "contact": 10}
FIRM_WEIGHTS = {"industry": 40, "stage": 30, "geography": 20, "type": 10}
FIRM_FALLBACKS = {"industry": 15, "stage": 10, "geography": 10}

MAX_SCORE = 100
INVESTOR_THRESHOLD = 30
FIRM_THRESHOLD = 25
AFFILIATED_THRESHOLD = 20
AFFILIATION_BOOST = 20
AFFILIATION_REASON = "Works at matched firm"

BROAD_GEOGRAPHIES = ("global", "united states")


def _industry_reason(company: ExtractedProfile, tags: List[str]) -> Optional[str]:
    matched = []
    for industry in company.industries:
        hit = match_industry(industry, tags)
        if hit is None:
            continue
        _, category = hit
        matched.append(industry if category is None else f"{industry} (via {category})")
    if not matched:
        return None
    return f"Industry match: {', '.join(matched)}"


def _matching_stage(stage: Optional[str], preferred: List[str]) -> Optional[str]:
    if not stage:
        return None
    stage_lower = stage.lower()
    for s in preferred:
        s_lower = s.lower().strip()
        if s_lower and (stage_lower in s_lower or s_lower in stage_lower):
            return s
    return None


def _geography_fits(startup_location: Optional[str], location: str) -> bool:
    if not startup_location or not startup_location.strip() or not location.strip():
        return False
    ours = startup_location.lower().strip()
    theirs = location.lower().strip()
    return ours in theirs or theirs in ours or any(g in theirs for g in BROAD_GEOGRAPHIES)


def score_investor(company: ExtractedProfile, investor: InvestorProfile) -> Tuple[int, List[str]]:
    score = 0
    reasons: List[str] = []

    # -------- 1) Industry, direct or through the taxonomy --------
    industry_reason = _industry_reason(company, investor.focus_tags())
    if industry_reason:
        score += INVESTOR_WEIGHTS["industry"]
        reasons.append(industry_reason)

    # -------- 2) Stage --------
    stage = _matching_stage(company.stage, investor.preferred_stages())
    if stage:
        score += INVESTOR_WEIGHTS["stage"]
        reasons.append(f"Stage match: {stage}")

    # -------- 3) Geography --------
    location = investor.resolved_location()
    if _geography_fits(company.location, location):
        score += INVESTOR_WEIGHTS["geography"]
        reasons.append(f"Geographic fit: {location}")

    # -------- 4) Activity / reachability --------
    if investor.investor_type and investor.investor_type.strip():
        score += INVESTOR_WEIGHTS["activity"]
        reasons.append(f"Active investor: {investor.investor_type}")

    if investor.email and investor.email.strip():
        score += INVESTOR_WEIGHTS["contact"]
        reasons.append("Direct contact available")

    return min(score, MAX_SCORE), reasons


def score_affiliated_investor(company: ExtractedProfile, investor: InvestorProfile) -> Tuple[int, List[str]]:
    """Investor rule plus the flat boost for working at an already matched firm."""
    score, reasons = score_investor(company, investor)
    return min(score + AFFILIATION_BOOST, MAX_SCORE), [AFFILIATION_REASON] + reasons


def score_firm(company: ExtractedProfile, firm: FirmProfile) -> Tuple[int, List[str]]:
    score = 0
    reasons: List[str] = []

    # -------- 1) Industry; a firm with no stated sectors is a generalist --------
    tags = firm.focus_tags()
    industry_reason = _industry_reason(company, tags)
    if industry_reason:
        score += FIRM_WEIGHTS["industry"]
        reasons.append(industry_reason)
    elif not tags:
        score += FIRM_FALLBACKS["industry"]
        reasons.append("Generalist firm (no stated sector focus)")

    # -------- 2) Stage --------
    preferred = firm.preferred_stages()
    stage = _matching_stage(company.stage, preferred)
    if stage:
        score += FIRM_WEIGHTS["stage"]
        reasons.append(f"Stage match: {stage}")
    elif not preferred:
        score += FIRM_FALLBACKS["stage"]
        reasons.append("Invests across stages")

    # -------- 3) Geography; unset location counts as global --------
    location = firm.resolved_location()
    if _geography_fits(company.location, location):
        score += FIRM_WEIGHTS["geography"]
        reasons.append(f"Geographic fit: {location}")
    elif not location.strip():
        score += FIRM_FALLBACKS["geography"]
        reasons.append("No geographic restriction")

    # -------- 4) Firm type --------
    if firm.firm_type and firm.firm_type.strip():
        score += FIRM_WEIGHTS["type"]
        reasons.append(f"Firm type: {firm.firm_type}")

    return min(score, MAX_SCORE), reasons
