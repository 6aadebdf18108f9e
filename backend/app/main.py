from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.routes.auth import router as auth_router
from app.api.routes.categories import router as categories_router
from app.api.routes.recurring import router as recurring_router
from app.services.recurring_scheduler import get_scheduler

configure_logging(settings.log_level, settings.env)

app = FastAPI()

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(auth_router)
app.include_router(categories_router)
app.include_router(recurring_router)

@app.on_event("startup")
async def _start_recurring_job():
    if settings.recurring_job_enabled:
        app.state.recurring_stop = get_scheduler().start()

@app.on_event("shutdown")
async def _stop_recurring_job():
    stop = getattr(app.state, "recurring_stop", None)
    if stop is not None:
        stop()
        await stop.wait()
