from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clip_todo.api import deps
from clip_todo.api.routes.captures import router as captures_router
from clip_todo.api.routes.messages import router as messages_router
from clip_todo.api.routes.reconcile import router as reconcile_router
from clip_todo.config import settings
from clip_todo.reconciliation.scheduler import ReconcileScheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    scheduler: ReconcileScheduler | None = None
    if settings.scheduler_enabled:
        scheduler = ReconcileScheduler(
            deps.get_reconciliation_service(),
            deps.get_vod_provider(),
            prune_interval=settings.prune_interval_seconds,
            reconcile_interval=settings.reconcile_interval_seconds,
        )
        await scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


app = FastAPI(
    title="Clip Todo API",
    description="Reconcile live stream bookmarks against VODs for clip creation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["https://www.twitch.tv"],
    allow_origin_regex=r"chrome-extension://.*|http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(captures_router)
app.include_router(reconcile_router)
app.include_router(messages_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
