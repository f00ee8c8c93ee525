import argparse
import asyncio
from dataclasses import replace
from typing import Dict, List

from models import ExtractedProfile, FirmProfile, InvestorProfile, MatchResult, coerce_stage
from matcher import (
    AFFILIATED_THRESHOLD,
    FIRM_THRESHOLD,
    INVESTOR_THRESHOLD,
    score_affiliated_investor,
    score_firm,
    score_investor,
)
from profiles import ProfileStore

DEFAULT_FIRM_LIMIT = 50
DEFAULT_INVESTOR_LIMIT = 30


def _rank_key(result: MatchResult):
    # score first, then name and id so equal scores come out in a stable order
    return (-result.score, (result.name or "").lower(), result.investor_id or result.firm_id or "")


def _firm_result(firm: FirmProfile, score: int, reasons: List[str]) -> MatchResult:
    return MatchResult(
        name=firm.name,
        score=score,
        reasons=tuple(reasons),
        profile=firm.public_fields(),
        is_firm_match=True,
        firm_id=firm.id,
        firm_name=firm.name,
    )


def _investor_result(investor: InvestorProfile, score: int, reasons: List[str]) -> MatchResult:
    return MatchResult(
        name=investor.name,
        score=score,
        reasons=tuple(reasons),
        profile=investor.public_fields(),
        investor_id=investor.id,
        firm_id=investor.firm_id,
        email=investor.email or None,
        firm_name=investor.affiliated_firm_name(),
    )


async def match_firms(
    company: ExtractedProfile,
    store: ProfileStore,
    limit: int = DEFAULT_FIRM_LIMIT,
) -> List[MatchResult]:
    """Phase A: every firm in the bounded pool, kept at or above FIRM_THRESHOLD."""
    firms = await store.list_firms()
    matches = []
    for firm in firms:
        score, reasons = score_firm(company, firm)
        if score >= FIRM_THRESHOLD:
            matches.append(_firm_result(firm, score, reasons))
    matches.sort(key=_rank_key)
    return matches[:limit]


async def match_investors(
    company: ExtractedProfile,
    store: ProfileStore,
    matched_firms: List[MatchResult],
    limit: int = DEFAULT_INVESTOR_LIMIT,
) -> List[MatchResult]:
    """
    Phase B: investors at matched firms get the affiliation boost and the
    relaxed threshold; the rest of the pool tops up the list under the
    standard threshold when the affiliated set falls short of `limit`.
    """
    firm_names: Dict[str, str] = {m.firm_id: m.name for m in matched_firms if m.firm_id}

    selected: Dict[str, MatchResult] = {}
    for investor in await store.list_investors_by_firms(set(firm_names)):
        score, reasons = score_affiliated_investor(company, investor)
        if score >= AFFILIATED_THRESHOLD and investor.id not in selected:
            selected[investor.id] = _investor_result(investor, score, reasons)

    if len(selected) < limit:
        for investor in await store.list_active_investors(exclude_ids=set(selected)):
            if investor.id in selected:
                continue
            score, reasons = score_investor(company, investor)
            if score >= INVESTOR_THRESHOLD:
                selected[investor.id] = _investor_result(investor, score, reasons)

    ranked = sorted(selected.values(), key=_rank_key)[:limit]
    return [
        replace(r, firm_name=firm_names[r.firm_id]) if r.firm_id in firm_names else r
        for r in ranked
    ]


def assemble_results(investor_matches: List[MatchResult], firm_matches: List[MatchResult]) -> List[MatchResult]:
    """Investors first, then firms; each group keeps its own score order."""
    return list(investor_matches) + list(firm_matches)


async def run_matching(
    company: ExtractedProfile,
    store: ProfileStore,
    firm_limit: int = DEFAULT_FIRM_LIMIT,
    investor_limit: int = DEFAULT_INVESTOR_LIMIT,
) -> List[MatchResult]:
    firms = await match_firms(company, store, firm_limit)
    investors = await match_investors(company, store, firms, investor_limit)
    return assemble_results(investors, firms)


def main():
    parser = argparse.ArgumentParser(
        description="Match a startup profile against investment firms and investors."
    )
    parser.add_argument("--firms", required=True, help="Path or URL of the firms JSON pool")
    parser.add_argument("--investors", required=True, help="Path or URL of the investors JSON pool")
    parser.add_argument("--deck", help="Pitch deck text file; extracted with the LLM when given")
    parser.add_argument("--industries", default="", help="Comma-separated industries (used without --deck)")
    parser.add_argument("--stage", help="Pre-seed|Seed|Series A|Series B|Series C|Growth")
    parser.add_argument("--location", help="Company location")
    parser.add_argument("--limit", type=int, default=DEFAULT_INVESTOR_LIMIT, help="Investor result limit")
    args = parser.parse_args()

    store = ProfileStore.from_sources(args.firms, args.investors)

    if args.deck:
        import extractor

        with open(args.deck, "r", encoding="utf-8") as f:
            deck_text = f.read()
        company = asyncio.run(extractor.analyze_deck(extractor.build_deck_text(deck_text)))
    else:
        company = ExtractedProfile(
            industries=[i.strip() for i in args.industries.split(",") if i.strip()],
            stage=coerce_stage(args.stage),
            location=args.location,
        )

    results = asyncio.run(run_matching(company, store, investor_limit=args.limit))

    print(f"Matches for {company.company_name or 'startup'} (stage: {company.stage or 'unknown'}):\n")
    for item in results:
        kind = "firm" if item.is_firm_match else "investor"
        firm = f" @ {item.firm_name}" if item.firm_name and not item.is_firm_match else ""
        print(f"[{kind}] {item.name}{firm} - score {item.score}")
        for r in item.reasons:
            print(f"  - {r}")
        print()


if __name__ == "__main__":
    main()
