import asyncio

import pytest

from helpers import FakeSocket, fake_completion
from jobs import JobStore
from llm import LLMError
from models import JobStatus
from notifications import NotificationService
from pipeline import MatchingPipeline
from profiles import ProfileStore, ProfileStoreError

DECK = "We are a construction-tech company raising a Series A in Austin, Texas"
EXTRACTION = {
    "companyName": "BuildRight",
    "industries": ["construction tech"],
    "stage": "Series A",
    "location": "Austin, Texas",
}


class RecordingJobStore(JobStore):
    """Keeps every (status, progress) pair written, in order."""

    def __init__(self):
        super().__init__()
        self.history = []

    async def advance(self, job_id, status, progress, current_step, extracted_profile=None):
        job = await super().advance(job_id, status, progress, current_step, extracted_profile)
        self.history.append((job.status, job.progress))
        return job

    async def complete(self, job_id, results, current_step):
        job = await super().complete(job_id, results, current_step)
        self.history.append((job.status, job.progress))
        return job

    async def fail(self, job_id, error_message):
        job = await super().fail(job_id, error_message)
        self.history.append((job.status, job.progress))
        return job


class BrokenPoolStore(ProfileStore):
    async def list_firms(self, limit=None):
        raise ProfileStoreError("firm store unavailable")


class BrokenNotifier(NotificationService):
    async def send_notification(self, user_id, notification):
        raise RuntimeError("socket layer down")


def _run(pipeline, owner_id="u1", socket=None, **kwargs):
    async def scenario():
        if socket is not None:
            await pipeline.notifier.connect(socket, owner_id)
        job = await pipeline.submit(owner_id, **kwargs)
        pending = job
        await pipeline.wait_idle()
        return pending, await pipeline.jobs.get_job(job.id)

    return asyncio.run(scenario())


def test_successful_run_completes_with_grouped_results(store):
    jobs = RecordingJobStore()
    socket = FakeSocket()
    pipeline = MatchingPipeline(jobs, store, NotificationService(), complete=fake_completion(EXTRACTION))

    pending, job = _run(pipeline, socket=socket, deck_text=DECK)

    assert pending.status is JobStatus.PENDING
    assert job.status is JobStatus.COMPLETE
    assert job.progress == 100
    assert job.extracted_profile.stage == "Series A"
    assert [r.investor_id or r.firm_id for r in job.match_results] == ["i3", "i1", "i5", "f1", "f2"]

    progress = [p for _, p in jobs.history]
    assert progress == sorted(progress)
    assert [s for s, p in jobs.history if p == 100] == [JobStatus.COMPLETE]
    assert [s.value for s, _ in jobs.history] == [
        "analyzing_deck", "analyzing_deck", "matching_firms", "matching_firms", "matching_investors", "complete",
    ]

    titles = [m["payload"]["title"] for m in socket.sent if "title" in m["payload"]]
    assert titles == ["Analyzing Pitch Deck", "Firms Found", "Investors Found", "Matching Complete!"]
    assert socket.sent[-1]["payload"]["resourceId"] == job.id


def test_llm_failure_marks_job_failed_and_notifies(store):
    socket = FakeSocket()
    pipeline = MatchingPipeline(
        JobStore(), store, NotificationService(), complete=fake_completion(error=LLMError("LLM call timed out after 60s")),
    )

    _, job = _run(pipeline, socket=socket, deck_text=DECK)

    assert job.status is JobStatus.FAILED
    assert job.error_message == "LLM call timed out after 60s"
    assert job.match_results is None
    assert job.progress < 100
    assert socket.sent[-1]["payload"]["title"] == "Matching Failed"


def test_unparsable_extraction_still_matches_on_fallbacks(store):
    pipeline = MatchingPipeline(JobStore(), store, NotificationService(), complete=fake_completion("Sorry, no idea."))
    _, job = _run(pipeline, deck_text=DECK)
    assert job.status is JobStatus.COMPLETE
    assert [r.firm_id for r in job.match_results if r.is_firm_match] == ["f2"]


def test_pool_failure_discards_partial_results(firms, investors):
    store = BrokenPoolStore(firms, investors)
    pipeline = MatchingPipeline(JobStore(), store, NotificationService(), complete=fake_completion(EXTRACTION))
    _, job = _run(pipeline, deck_text=DECK)
    assert job.status is JobStatus.FAILED
    assert job.error_message == "firm store unavailable"
    assert job.match_results is None


def test_notification_failures_do_not_affect_the_job(store):
    pipeline = MatchingPipeline(JobStore(), store, BrokenNotifier(), complete=fake_completion(EXTRACTION))
    _, job = _run(pipeline, deck_text=DECK)
    assert job.status is JobStatus.COMPLETE


def test_linked_startup_fills_gaps_without_deck(store):
    complete = fake_completion(EXTRACTION)
    pipeline = MatchingPipeline(JobStore(), store, NotificationService(), complete=complete)
    _, job = _run(pipeline, startup_id="s1")
    assert complete.calls == []
    assert job.status is JobStatus.COMPLETE
    assert job.extracted_profile.company_name == "BuildRight Inc"
    assert job.extracted_profile.stage == "Series A"
    assert job.startup_id == "s1"


def test_extracted_fields_win_over_linked_startup(store):
    complete = fake_completion({"companyName": "BuildRight", "stage": "Seed"})
    pipeline = MatchingPipeline(JobStore(), store, NotificationService(), complete=complete)
    _, job = _run(pipeline, deck_text=DECK, startup_id="s1")
    assert job.extracted_profile.company_name == "BuildRight"
    assert job.extracted_profile.stage == "Seed"
    assert job.extracted_profile.traction == "12 pilot sites"


def test_team_enrichment_runs_when_enabled(store):
    responses = {
        "Analyze this pitch deck": '{"companyName": "BuildRight", "team": [{"name": "Ada", "role": "CEO"}]}',
        "Ada": '{"headline": "Construction veteran"}',
    }

    async def complete(prompt):
        for marker, text in responses.items():
            if prompt.startswith(marker) or f'"{marker}"' in prompt:
                return text
        return ""

    pipeline = MatchingPipeline(JobStore(), store, NotificationService(), complete=complete, enrich_team=True)
    _, job = _run(pipeline, deck_text=DECK)
    assert job.extracted_profile.team[0].enrichment["headline"] == "Construction veteran"


@pytest.mark.parametrize("kwargs", [{}, {"deck_text": "   "}])
def test_submission_without_deck_or_startup_is_rejected(store, kwargs):
    jobs = JobStore()
    pipeline = MatchingPipeline(jobs, store, NotificationService(), complete=fake_completion(EXTRACTION))
    with pytest.raises(ValueError):
        asyncio.run(pipeline.submit("u1", **kwargs))
    assert asyncio.run(jobs.list_jobs_for_user("u1")) == []


def test_concurrent_jobs_are_independent(store):
    pipeline = MatchingPipeline(JobStore(), store, NotificationService(), complete=fake_completion(EXTRACTION))

    async def scenario():
        submitted = [await pipeline.submit(f"u{n}", deck_text=DECK) for n in range(5)]
        await pipeline.wait_idle()
        return [await pipeline.jobs.get_job(j.id) for j in submitted]

    finished = asyncio.run(scenario())
    assert {j.status for j in finished} == {JobStatus.COMPLETE}
    assert len({j.id for j in finished}) == 5
