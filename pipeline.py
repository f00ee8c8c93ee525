import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

import config
import extractor
import llm
from jobs import JobStore
from matchmaking import assemble_results, match_firms, match_investors
from models import ExtractedProfile, JobStatus, MatchJob, SupplementaryDocument, utc_now
from notifications import NotificationService
from profiles import ProfileStore

logger = logging.getLogger(__name__)

Completion = Callable[[str], Awaitable[str]]


class MatchingPipeline:
    """
    Runs one matching job end to end in the background:
    deck extraction -> firm matching -> firm-biased investor matching,
    writing the job row after every phase and pushing live progress events.
    """

    def __init__(
        self,
        jobs: JobStore,
        profiles: ProfileStore,
        notifier: NotificationService,
        complete: Completion = llm.complete,
        firm_limit: int = config.FIRM_MATCH_LIMIT,
        investor_limit: int = config.INVESTOR_MATCH_LIMIT,
        enrich_team: bool = config.ENRICH_TEAM_PROFILES,
    ):
        self.jobs = jobs
        self.profiles = profiles
        self.notifier = notifier
        self.complete = complete
        self.firm_limit = firm_limit
        self.investor_limit = investor_limit
        self.enrich_team = enrich_team
        self._tasks: Set[asyncio.Task] = set()

    async def submit(
        self,
        owner_id: str,
        deck_text: str = "",
        startup_id: Optional[str] = None,
        documents: Optional[Sequence[SupplementaryDocument]] = None,
        pitch_deck_url: Optional[str] = None,
    ) -> MatchJob:
        """Create the pending job, start the run detached and return immediately."""
        if not owner_id:
            raise ValueError("owner_id is required")
        if not (deck_text and deck_text.strip()) and not startup_id:
            raise ValueError("Either deck text or a linked startup is required")

        job = await self.jobs.create_job(owner_id, startup_id=startup_id, pitch_deck_url=pitch_deck_url)
        task = asyncio.create_task(self.run(job.id, deck_text, list(documents or [])))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def wait_idle(self) -> None:
        """Await every job started by this pipeline."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _notify(self, job: MatchJob, title: str, message: str) -> None:
        notification: Dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "type": "accelerated_match",
            "title": title,
            "message": message,
            "resourceType": "accelerated_match",
            "resourceId": job.id,
            "status": job.status.value,
            "progress": job.progress,
            "createdAt": utc_now().isoformat(),
        }
        try:
            await self.notifier.send_notification(job.owner_id, notification)
        except Exception:
            logger.exception("Notification for job %s could not be sent", job.id)

    async def run(self, job_id: str, deck_text: str, documents: List[SupplementaryDocument]) -> None:
        try:
            job = await self.jobs.get_job(job_id)
            startup = await self.profiles.get_startup(job.startup_id) if job.startup_id else None
            if job.startup_id and startup is None:
                logger.warning("Linked startup %s not found for job %s", job.startup_id, job_id)

            # -------- 1) Deck extraction --------
            job = await self.jobs.advance(job_id, JobStatus.ANALYZING_DECK, 10, "Analyzing pitch deck with AI...")
            await self._notify(job, "Analyzing Pitch Deck", "AI is extracting key information from your deck...")

            full_text = extractor.build_deck_text(deck_text, documents)
            if full_text:
                profile = await extractor.analyze_deck(full_text, self.complete)
            else:
                profile = ExtractedProfile()
            profile = extractor.merge_with_startup(profile, startup)
            if self.enrich_team and profile.team:
                profile.team = await extractor.enrich_team(profile.team, self.complete)
            job = await self.jobs.advance(
                job_id, JobStatus.ANALYZING_DECK, 25, "Pitch deck analyzed", extracted_profile=profile
            )

            # -------- 2) Firms --------
            job = await self.jobs.advance(job_id, JobStatus.MATCHING_FIRMS, 35, "Matching with investment firms...")
            firm_matches = await match_firms(profile, self.profiles, self.firm_limit)
            job = await self.jobs.advance(
                job_id, JobStatus.MATCHING_FIRMS, 55, f"Found {len(firm_matches)} matching firms"
            )
            await self._notify(job, "Firms Found", f"Found {len(firm_matches)} investment firms aligned with your startup")

            # -------- 3) Investors, biased by matched firms --------
            job = await self.jobs.advance(job_id, JobStatus.MATCHING_INVESTORS, 65, "Matching with investors...")
            investor_matches = await match_investors(profile, self.profiles, firm_matches, self.investor_limit)
            await self._notify(job, "Investors Found", f"Found {len(investor_matches)} potential investors")

            # -------- 4) Done --------
            results = assemble_results(investor_matches, firm_matches)
            job = await self.jobs.complete(
                job_id,
                results,
                f"Found {len(investor_matches)} investor matches and {len(firm_matches)} firm matches",
            )
            await self._notify(
                job,
                "Matching Complete!",
                f"Found {len(investor_matches)} potential investors and {len(firm_matches)} firms for your startup",
            )
        except Exception as exc:
            logger.exception("Accelerated matching failed for job %s", job_id)
            try:
                job = await self.jobs.fail(job_id, str(exc) or exc.__class__.__name__)
            except Exception:
                logger.exception("Could not mark job %s as failed", job_id)
                return
            await self._notify(job, "Matching Failed", "There was an error processing your pitch deck")
