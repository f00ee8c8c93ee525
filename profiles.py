"""
Read-only pools of investment firms, individual investors and startups.

Pools are loaded from local JSON files or JSON URLs and served as bounded
snapshot reads. Nothing in the matching core mutates them.
"""
import asyncio
import json
import logging
from typing import Any, Collection, Dict, List, Optional

import requests

from models import FirmProfile, InvestorProfile, StartupRecord

logger = logging.getLogger(__name__)


class ProfileStoreError(Exception):
    pass


def load_records(source: Optional[str]) -> List[Dict[str, Any]]:
    """Allow loading from a remote JSON URL or local file; no source means an empty pool."""
    if not source:
        return []
    if source.startswith("http://") or source.startswith("https://"):
        try:
            resp = requests.get(source, timeout=10)
        except requests.RequestException as exc:
            raise ProfileStoreError(f"Failed to fetch {source}: {exc}") from exc
        if resp.status_code >= 400:
            raise ProfileStoreError(f"Failed to fetch {source} ({resp.status_code}): {resp.text}")
        raw = resp.json()
    else:
        try:
            with open(source, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            raise ProfileStoreError(f"Failed to read {source}: {exc}") from exc

    if not isinstance(raw, list):
        raise ProfileStoreError(f"{source} must contain a JSON array of records")
    return raw


class ProfileStore:
    """In-memory pools; list order is treated as recency order (newest first)."""

    def __init__(
        self,
        firms: Optional[List[FirmProfile]] = None,
        investors: Optional[List[InvestorProfile]] = None,
        startups: Optional[List[StartupRecord]] = None,
        read_limit: int = 500,
    ):
        self._firms = list(firms or [])
        self._investors = list(investors or [])
        self._startups = {s.id: s for s in startups or []}
        self.read_limit = read_limit

    @classmethod
    def from_sources(
        cls,
        firms_source: Optional[str],
        investors_source: Optional[str],
        startups_source: Optional[str] = None,
        read_limit: int = 500,
    ) -> "ProfileStore":
        try:
            firms = [FirmProfile.from_dict(r) for r in load_records(firms_source)]
            investors = [InvestorProfile.from_dict(r) for r in load_records(investors_source)]
            startups = [StartupRecord.from_dict(r) for r in load_records(startups_source)]
        except TypeError as exc:
            raise ProfileStoreError(f"Malformed pool record: {exc}") from exc
        logger.info("Loaded %d firms, %d investors, %d startups", len(firms), len(investors), len(startups))
        return cls(firms, investors, startups, read_limit)

    def counts(self) -> Dict[str, int]:
        return {"firms": len(self._firms), "investors": len(self._investors), "startups": len(self._startups)}

    def _bound(self, limit: Optional[int]) -> int:
        return self.read_limit if limit is None else min(limit, self.read_limit)

    async def list_firms(self, limit: Optional[int] = None) -> List[FirmProfile]:
        await asyncio.sleep(0)
        return self._firms[: self._bound(limit)]

    async def list_investors_by_firms(self, firm_ids: Collection[str]) -> List[InvestorProfile]:
        await asyncio.sleep(0)
        if not firm_ids:
            return []
        hits = [i for i in self._investors if i.is_active and i.firm_id and i.firm_id in firm_ids]
        return hits[: self.read_limit]

    async def list_active_investors(
        self,
        limit: Optional[int] = None,
        exclude_ids: Collection[str] = (),
    ) -> List[InvestorProfile]:
        await asyncio.sleep(0)
        hits = [i for i in self._investors if i.is_active and i.id not in exclude_ids]
        return hits[: self._bound(limit)]

    async def get_startup(self, startup_id: str) -> Optional[StartupRecord]:
        await asyncio.sleep(0)
        return self._startups.get(startup_id)
