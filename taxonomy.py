"""
Industry taxonomy: broad categories and the alias terms that relate
differently worded industry labels ("film" <-> "entertainment finance").
"""
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

INDUSTRY_ALIASES: Dict[str, List[str]] = {
    "fintech": ["financial", "finance", "payments", "banking", "insurtech"],
    "saas": ["software", "enterprise", "b2b", "cloud"],
    "ai": ["artificial intelligence", "machine learning", "ml", "deep learning", "analytics"],
    "healthcare": ["health", "healthtech", "biotech", "medtech", "digital health"],
    "consumer": ["b2c", "retail", "e-commerce", "ecommerce", "marketplace"],
    "crypto": ["blockchain", "web3", "defi", "nft"],
    "entertainment": [
        "film", "movie", "movies", "cinema", "motion picture", "production", "studio",
        "streaming", "content", "media", "tv", "television", "video", "animation",
        "documentary", "theatrical", "distribution", "post-production", "vfx",
        "entertainment finance", "film financing", "slate financing", "gap financing",
        "completion bond", "tax credit", "film fund", "media fund", "content fund",
        "independent film", "indie film", "feature film", "series", "episodic",
        "music", "gaming", "esports", "sports media", "live events",
    ],
    "real estate": [
        "property", "properties", "realty", "real-estate", "commercial real estate",
        "residential", "multifamily", "industrial", "retail real estate", "office",
        "hospitality", "hotel", "mixed-use", "development", "construction",
        "construction loan", "bridge loan", "mezzanine", "mortgage", "reit",
        "land", "affordable housing", "senior housing", "student housing",
        "self-storage", "data center", "logistics", "warehouse", "flex space",
        "ground-up", "value-add", "core", "core-plus", "opportunistic",
        "private equity real estate", "real estate debt", "infrastructure",
        "proptech", "property technology", "contech", "construction tech",
    ],
    "climate": ["cleantech", "sustainability", "renewable", "energy", "green", "carbon", "esg"],
    "food": ["foodtech", "agtech", "agriculture", "beverage", "cpg", "restaurant"],
    "mobility": ["transportation", "automotive", "ev", "electric vehicle", "logistics", "supply chain"],
    "edtech": ["education", "learning", "training", "ed-tech", "online learning"],
    "proptech": ["property technology", "real estate tech", "retech", "contech"],
}

_WS = re.compile(r"\s+")


def normalize_label(label: str) -> str:
    return _WS.sub(" ", (label or "").strip().lower())


SHORT_TERM_LENGTH = 3


def _contains_term(haystack: str, needle: str) -> bool:
    # short terms ("ai", "ml", "ev", "tv") must be whole words so "ai" does not hit "retail"
    if not needle or not haystack:
        return False
    if len(needle) > SHORT_TERM_LENGTH:
        return needle in haystack
    return re.search(r"(?<!\w)" + re.escape(needle) + r"(?!\w)", haystack) is not None


def labels_overlap(a: str, b: str) -> bool:
    """Equal, or one label contains the other, after normalisation."""
    a, b = normalize_label(a), normalize_label(b)
    if not a or not b:
        return False
    return a == b or _contains_term(a, b) or _contains_term(b, a)


def categories_for(label: str, table: Optional[Dict[str, List[str]]] = None) -> Set[str]:
    """Every category whose name or aliases match the label."""
    table = INDUSTRY_ALIASES if table is None else table
    found: Set[str] = set()
    if not normalize_label(label):
        return found
    for category, aliases in table.items():
        if any(labels_overlap(label, term) for term in [category, *aliases]):
            found.add(category)
    return found


def industry_related(a: str, b: str, table: Optional[Dict[str, List[str]]] = None) -> bool:
    if labels_overlap(a, b):
        return True
    return bool(categories_for(a, table) & categories_for(b, table))


def match_industry(
    label: str,
    tags: Iterable[str],
    table: Optional[Dict[str, List[str]]] = None,
) -> Optional[Tuple[str, Optional[str]]]:
    """
    Find the first tag related to `label`.
    Returns (tag, category) where category is None for a direct match,
    or None when nothing relates.
    """
    tags = [t for t in tags if normalize_label(t)]
    for tag in tags:
        if labels_overlap(label, tag):
            return tag, None

    label_categories = categories_for(label, table)
    if not label_categories:
        return None
    for tag in tags:
        shared = label_categories & categories_for(tag, table)
        if shared:
            return tag, sorted(shared)[0]
    return None
