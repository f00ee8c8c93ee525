from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TypeAlias, Literal

Stage: TypeAlias = Literal["Pre-seed", "Seed", "Series A", "Series B", "Series C", "Growth"]

STAGES: List[Stage] = ["Pre-seed", "Seed", "Series A", "Series B", "Series C", "Growth"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _stage_key(value: str) -> str:
    return "".join(ch for ch in value.lower() if ch.isalnum())


_STAGE_LOOKUP = {_stage_key(s): s for s in STAGES}
_STAGE_LOOKUP.update({"angel": "Pre-seed", "seriesaround": "Series A", "seedround": "Seed", "lategrowth": "Growth"})


def coerce_stage(value: Any) -> Optional[Stage]:
    """
    Map a free-text stage label onto STAGES, or None when it is not recognised.
    Trailing qualifiers are ignored: "Series A (raising $5M)" and "Seed+" still resolve.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    key = _stage_key(value)
    if key in _STAGE_LOOKUP:
        return _STAGE_LOOKUP[key]  # type: ignore[return-value]
    prefixes = [k for k in _STAGE_LOOKUP if key.startswith(k)]
    if not prefixes:
        return None
    return _STAGE_LOOKUP[max(prefixes, key=len)]  # type: ignore[return-value]


def _from_mapping(cls, raw: Dict[str, Any]):
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in raw.items() if k in known})


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def resolve_field(primary: Any, overrides: Optional[Dict[str, Any]], key: str) -> Any:
    """Custom-field override wins over the primary column when it carries a value."""
    if overrides:
        override = overrides.get(key)
        if not _is_empty(override):
            return override
    return primary


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(v) for v in value if v is not None and str(v).strip()]


# Custom-field keys carried by CRM-sourced investor and firm records.
SECTORS_FIELD = "Fund focus"
STAGES_FIELD = "Fund stage"
GEOGRAPHY_FIELD = "Preferred Geography"
FOCUS_FIELD = "Investment Focus"
ORGANIZATION_FIELD = "Managing Organization"


@dataclass
class TeamMember:
    name: Optional[str] = None
    role: Optional[str] = None
    linkedin_url: Optional[str] = None
    background: Optional[str] = None
    # filled by team enrichment: headline, experience, education, skills
    enrichment: Optional[Dict[str, Any]] = None


@dataclass
class ExtractedProfile:
    company_name: Optional[str] = None
    industries: List[str] = field(default_factory=list)
    stage: Optional[Stage] = None
    location: Optional[str] = None
    problem: Optional[str] = None
    solution: Optional[str] = None
    market: Optional[str] = None
    business_model: Optional[str] = None
    traction: Optional[str] = None
    team: List[TeamMember] = field(default_factory=list)
    competitors: List[str] = field(default_factory=list)
    ask_amount: Optional[str] = None
    use_of_funds: Optional[str] = None
    website_url: Optional[str] = None

    def is_empty(self) -> bool:
        return all(_is_empty(getattr(self, f.name)) for f in fields(self))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StartupRecord:
    id: str
    name: Optional[str] = None
    industries: List[str] = field(default_factory=list)
    stage: Optional[str] = None
    location: Optional[str] = None
    problem: Optional[str] = None
    solution: Optional[str] = None
    market: Optional[str] = None
    business_model: Optional[str] = None
    traction: Optional[str] = None
    funding_target: Optional[str] = None
    website_url: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "StartupRecord":
        return _from_mapping(cls, raw)

    def as_profile(self) -> ExtractedProfile:
        return ExtractedProfile(
            company_name=self.name,
            industries=_as_list(self.industries),
            stage=coerce_stage(self.stage),
            location=self.location,
            problem=self.problem,
            solution=self.solution,
            market=self.market,
            business_model=self.business_model,
            traction=self.traction,
            ask_amount=self.funding_target,
            website_url=self.website_url,
        )


@dataclass
class InvestorProfile:
    id: str
    name: str
    email: Optional[str] = None
    is_active: bool = True
    investor_type: Optional[str] = None
    title: Optional[str] = None
    stages: List[str] = field(default_factory=list)
    sectors: List[str] = field(default_factory=list)
    location: Optional[str] = None
    firm_id: Optional[str] = None
    firm_name: Optional[str] = None
    custom_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "InvestorProfile":
        profile = _from_mapping(cls, raw)
        profile.name = profile.name or ""
        return profile

    def focus_tags(self) -> List[str]:
        tags = _as_list(resolve_field(self.sectors, self.custom_fields, SECTORS_FIELD))
        focus = self.custom_fields.get(FOCUS_FIELD) if self.custom_fields else None
        return tags + _as_list(focus)

    def preferred_stages(self) -> List[str]:
        return _as_list(resolve_field(self.stages, self.custom_fields, STAGES_FIELD))

    def resolved_location(self) -> str:
        return ", ".join(_as_list(resolve_field(self.location, self.custom_fields, GEOGRAPHY_FIELD)))

    def affiliated_firm_name(self) -> Optional[str]:
        return resolve_field(self.firm_name, self.custom_fields, ORGANIZATION_FIELD)

    def public_fields(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "title": self.title,
            "investor_type": self.investor_type,
            "stages": list(self.stages or []),
            "sectors": list(self.sectors or []),
            "location": self.location,
            "firm_id": self.firm_id,
            "custom_fields": dict(self.custom_fields or {}),
        }


@dataclass
class FirmProfile:
    id: str
    name: str
    firm_type: Optional[str] = None
    stages: List[str] = field(default_factory=list)
    sectors: List[str] = field(default_factory=list)
    location: Optional[str] = None
    check_size: Optional[str] = None
    custom_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FirmProfile":
        profile = _from_mapping(cls, raw)
        profile.name = profile.name or ""
        return profile

    def focus_tags(self) -> List[str]:
        tags = _as_list(resolve_field(self.sectors, self.custom_fields, SECTORS_FIELD))
        focus = self.custom_fields.get(FOCUS_FIELD) if self.custom_fields else None
        return tags + _as_list(focus)

    def preferred_stages(self) -> List[str]:
        return _as_list(resolve_field(self.stages, self.custom_fields, STAGES_FIELD))

    def resolved_location(self) -> str:
        return ", ".join(_as_list(resolve_field(self.location, self.custom_fields, GEOGRAPHY_FIELD)))

    def public_fields(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "firm_type": self.firm_type,
            "stages": list(self.stages or []),
            "sectors": list(self.sectors or []),
            "location": self.location,
            "check_size": self.check_size,
        }


@dataclass(frozen=True)
class MatchResult:
    name: str
    score: int
    reasons: Tuple[str, ...]
    profile: Dict[str, Any]
    is_firm_match: bool = False
    investor_id: Optional[str] = None
    firm_id: Optional[str] = None
    email: Optional[str] = None
    firm_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reasons"] = list(self.reasons)
        return data


class JobStatus(str, Enum):
    PENDING = "pending"
    ANALYZING_DECK = "analyzing_deck"
    MATCHING_FIRMS = "matching_firms"
    MATCHING_INVESTORS = "matching_investors"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


@dataclass
class SupplementaryDocument:
    type: str
    name: str
    text: str


@dataclass
class MatchJob:
    id: str
    owner_id: str
    startup_id: Optional[str] = None
    pitch_deck_url: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    current_step: str = "Initializing..."
    extracted_profile: Optional[ExtractedProfile] = None
    match_results: Optional[List[MatchResult]] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "startup_id": self.startup_id,
            "pitch_deck_url": self.pitch_deck_url,
            "status": self.status.value,
            "progress": self.progress,
            "current_step": self.current_step,
            "extracted_profile": self.extracted_profile.to_dict() if self.extracted_profile else None,
            "match_results": [r.to_dict() for r in self.match_results] if self.match_results is not None else None,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
