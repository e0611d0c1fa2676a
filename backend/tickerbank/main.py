from fastapi import FastAPI
import asyncio
from fastapi.middleware.cors import CORSMiddleware

from tickerbank.core.config import settings
from tickerbank.core.logging import configure_logging
from tickerbank.api.routes.families import router as families_router
from tickerbank.api.routes.tiers import router as tiers_router
from tickerbank.api.routes.accounts import router as accounts_router
from tickerbank.api.routes.accrual import router as accrual_router
from tickerbank.services.accrual_sync import accrual_sync_loop

configure_logging(settings.log_level)

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

app.include_router(families_router)
app.include_router(tiers_router)
app.include_router(accounts_router)
app.include_router(accrual_router)

@app.on_event("startup")
async def _start_accrual_sync():
    if getattr(settings, "accrual_sync_enabled", True):
        asyncio.create_task(accrual_sync_loop())
