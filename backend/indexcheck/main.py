from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from indexcheck.api.campaigns import router as campaigns_router
from indexcheck.api.credentials import router as credentials_router
from indexcheck.core.config import settings
from indexcheck.core.logging import configure_logging
from indexcheck.db.session import SessionLocal, init_db
from indexcheck.services.campaigns import CampaignError, CampaignNotFound
from indexcheck.services.credentials import SqlCredentialStore
from indexcheck.workers.processor import process_index_check
from indexcheck.workers.queue import create_queue

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    credentials = SqlCredentialStore(SessionLocal)
    app.state.credentials = credentials
    app.state.queue = create_queue(
        partial(process_index_check, session_factory=SessionLocal, credentials=credentials),
        settings,
    )
    try:
        yield
    finally:
        # in-process backend finishes queued checks before exit
        await run_in_threadpool(app.state.queue.close)


app = FastAPI(title="Campaign index check", lifespan=lifespan)

@app.get("/health")
def health():
    return {"status": "ok", "queue": app.state.queue.backend}

@app.exception_handler(CampaignNotFound)
async def campaign_not_found(request: Request, exc: CampaignNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(CampaignError)
async def campaign_error(request: Request, exc: CampaignError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

app.include_router(campaigns_router)
app.include_router(credentials_router)
