# main.py
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import config
import llm
from jobs import JobNotFound, JobStore
from models import MatchJob, SupplementaryDocument
from notifications import NotificationService
from pipeline import MatchingPipeline
from profiles import ProfileStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- Pools, job store and live channel, created once ----------

PROFILES = ProfileStore.from_sources(
    config.FIRMS_SOURCE,
    config.INVESTORS_SOURCE,
    config.STARTUPS_SOURCE,
    read_limit=config.POOL_READ_LIMIT,
)
JOBS = JobStore()
NOTIFIER = NotificationService()
PIPELINE = MatchingPipeline(JOBS, PROFILES, NOTIFIER)


def get_pipeline() -> MatchingPipeline:
    return PIPELINE


def get_notifier() -> NotificationService:
    return NOTIFIER


@asynccontextmanager
async def lifespan(app: FastAPI):
    NOTIFIER.start()
    yield
    await NOTIFIER.shutdown()


app = FastAPI(title="Accelerated Investor Matching", lifespan=lifespan)

# ---------- CORS for frontend ----------

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Pydantic models for API ----------

class DocumentInput(BaseModel):
    type: str = "document"
    name: str
    text: str


class SubmitJobInput(BaseModel):
    owner_id: str
    deck_text: str = ""
    startup_id: Optional[str] = None
    pitch_deck_url: Optional[str] = None
    documents: List[DocumentInput] = Field(default_factory=list)


class MatchResultOut(BaseModel):
    name: str
    score: int
    reasons: List[str]
    profile: Dict[str, Any]
    is_firm_match: bool
    investor_id: Optional[str] = None
    firm_id: Optional[str] = None
    email: Optional[str] = None
    firm_name: Optional[str] = None


class JobOut(BaseModel):
    id: str
    owner_id: str
    startup_id: Optional[str] = None
    pitch_deck_url: Optional[str] = None
    status: str
    progress: int
    current_step: str
    extracted_profile: Optional[Dict[str, Any]] = None
    match_results: Optional[List[MatchResultOut]] = None
    error_message: Optional[str] = None
    created_at: str
    updated_at: str
    completed_at: Optional[str] = None


def _job_out(job: MatchJob) -> Dict[str, Any]:
    return job.to_dict()


# ---------- Simple root endpoints ----------

@app.get("/")
def root():
    return {"message": "Accelerated Investor Matching API. See /docs for Swagger UI."}


@app.get("/health")
def health(notifier: NotificationService = Depends(get_notifier)):
    return {
        "status": "ok",
        "pools": PROFILES.counts(),
        "llm_configured": llm.is_configured(),
        "live_connections": notifier.connection_count(),
        "connected_users": len(notifier.connected_users()),
    }


# ---------- Matching jobs ----------

@app.post("/api/accelerated-matching/jobs", response_model=JobOut, status_code=202)
async def submit_job(payload: SubmitJobInput, pipeline: MatchingPipeline = Depends(get_pipeline)):
    """
    Create a matching job from deck text and/or a linked startup.
    Returns the pending job immediately; progress arrives on the live channel.
    """
    documents = [SupplementaryDocument(type=d.type, name=d.name, text=d.text) for d in payload.documents]
    try:
        job = await pipeline.submit(
            payload.owner_id,
            deck_text=payload.deck_text,
            startup_id=payload.startup_id,
            documents=documents,
            pitch_deck_url=payload.pitch_deck_url,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _job_out(job)


@app.get("/api/accelerated-matching/jobs/{job_id}", response_model=JobOut)
async def poll_job(
    job_id: str,
    x_user_id: Optional[str] = Header(default=None),
    pipeline: MatchingPipeline = Depends(get_pipeline),
):
    try:
        job = await pipeline.jobs.get_job(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    # other users' jobs look missing rather than forbidden
    if x_user_id and not await pipeline.jobs.verify_job_ownership(job_id, x_user_id):
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return _job_out(job)


@app.get("/api/users/{user_id}/accelerated-matching/jobs", response_model=List[JobOut])
async def list_jobs(user_id: str, pipeline: MatchingPipeline = Depends(get_pipeline)):
    return [_job_out(j) for j in await pipeline.jobs.list_jobs_for_user(user_id)]


# ---------- Live channel ----------

def _session_user(websocket: WebSocket) -> Optional[str]:
    return websocket.headers.get("x-user-id") or websocket.query_params.get("user_id")


@app.websocket(config.WS_PATH)
async def live_channel(websocket: WebSocket, notifier: NotificationService = Depends(get_notifier)):
    await websocket.accept()
    conn = await notifier.connect(websocket, _session_user(websocket))
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except (ValueError, KeyError) as exc:
                # KeyError: binary frame on a text channel
                logger.warning("Ignoring malformed live-channel message: %r", exc)
                continue
            await notifier.handle_message(conn, message)
    except WebSocketDisconnect:
        logger.debug("Client disconnected")
    finally:
        await notifier.disconnect(conn)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
