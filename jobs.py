"""
Job store and lifecycle for matching runs.

pending -> analyzing_deck -> matching_firms -> matching_investors -> complete,
with failed reachable from any non-terminal state. Every write goes through
one of the transition methods, which reject skipped or reordered phases and
progress that moves backwards.
"""
import copy
import itertools
import logging
import uuid
from typing import Dict, List, Optional

from models import ExtractedProfile, JobStatus, MatchJob, MatchResult, utc_now

logger = logging.getLogger(__name__)

PHASE_ORDER = [
    JobStatus.PENDING,
    JobStatus.ANALYZING_DECK,
    JobStatus.MATCHING_FIRMS,
    JobStatus.MATCHING_INVESTORS,
    JobStatus.COMPLETE,
]


class JobNotFound(KeyError):
    pass


class InvalidTransition(ValueError):
    pass


class JobStore:
    def __init__(self):
        self._jobs: Dict[str, MatchJob] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()

    async def create_job(
        self,
        owner_id: str,
        startup_id: Optional[str] = None,
        pitch_deck_url: Optional[str] = None,
    ) -> MatchJob:
        job = MatchJob(id=str(uuid.uuid4()), owner_id=owner_id, startup_id=startup_id, pitch_deck_url=pitch_deck_url)
        self._jobs[job.id] = job
        self._sequence[job.id] = next(self._counter)
        return copy.deepcopy(job)

    def _row(self, job_id: str) -> MatchJob:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFound(job_id) from None

    async def get_job(self, job_id: str) -> MatchJob:
        return copy.deepcopy(self._row(job_id))

    async def list_jobs_for_user(self, owner_id: str) -> List[MatchJob]:
        owned = [j for j in self._jobs.values() if j.owner_id == owner_id]
        owned.sort(key=lambda j: (j.created_at, self._sequence[j.id]), reverse=True)
        return [copy.deepcopy(j) for j in owned]

    async def verify_job_ownership(self, job_id: str, user_id: str) -> bool:
        job = self._jobs.get(job_id)
        return job is not None and job.owner_id == user_id

    def _check(self, job: MatchJob, status: JobStatus, progress: int) -> None:
        if job.status.is_terminal:
            raise InvalidTransition(f"Job {job.id} is already {job.status.value}")
        current, target = PHASE_ORDER.index(job.status), PHASE_ORDER.index(status)
        if target not in (current, current + 1):
            raise InvalidTransition(f"Cannot move job {job.id} from {job.status.value} to {status.value}")
        if not 0 <= progress <= 100:
            raise InvalidTransition(f"Progress {progress} out of range")
        if progress < job.progress:
            raise InvalidTransition(f"Progress cannot go back from {job.progress} to {progress}")
        if (progress == 100) != (status is JobStatus.COMPLETE):
            raise InvalidTransition("Progress reaches 100 only when the job is complete")

    async def advance(
        self,
        job_id: str,
        status: JobStatus,
        progress: int,
        current_step: str,
        extracted_profile: Optional[ExtractedProfile] = None,
    ) -> MatchJob:
        """Move a running job to `status` (or further within it)."""
        job = self._row(job_id)
        if status is JobStatus.COMPLETE or status is JobStatus.FAILED:
            raise InvalidTransition("Use complete() or fail() for terminal states")
        self._check(job, status, progress)

        job.status = status
        job.progress = progress
        job.current_step = current_step
        job.updated_at = utc_now()
        if extracted_profile is not None:
            job.extracted_profile = copy.deepcopy(extracted_profile)
        logger.info("Job %s -> %s (%d%%): %s", job_id, status.value, progress, current_step)
        return copy.deepcopy(job)

    async def complete(self, job_id: str, results: List[MatchResult], current_step: str) -> MatchJob:
        job = self._row(job_id)
        if results is None:
            raise InvalidTransition("A complete job needs a result list")
        self._check(job, JobStatus.COMPLETE, 100)

        now = utc_now()
        job.status = JobStatus.COMPLETE
        job.progress = 100
        job.current_step = current_step
        job.match_results = list(results)
        job.updated_at = now
        job.completed_at = now
        logger.info("Job %s complete with %d results", job_id, len(results))
        return copy.deepcopy(job)

    async def fail(self, job_id: str, error_message: str) -> MatchJob:
        job = self._row(job_id)
        if job.status.is_terminal:
            raise InvalidTransition(f"Job {job.id} is already {job.status.value}")

        job.status = JobStatus.FAILED
        job.error_message = error_message or "Unknown error"
        job.current_step = "Matching failed"
        job.match_results = None
        job.updated_at = utc_now()
        logger.info("Job %s failed: %s", job_id, job.error_message)
        return copy.deepcopy(job)
