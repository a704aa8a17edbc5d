from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wallet.core.config import settings
from wallet.core.logging import configure_logging
from wallet.api.deps import rate_monitor
from wallet.api.routes.transactions import router as tx_router
from wallet.api.routes.rates import router as rates_router
from wallet.api.routes.ledger import router as ledger_router
from wallet.api.routes.analytics import router as analytics_router

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

app.include_router(tx_router)
app.include_router(rates_router)
app.include_router(ledger_router)
app.include_router(analytics_router)

@app.on_event("startup")
async def _start_rate_monitor():
    if getattr(settings, "rate_monitor_enabled", True):
        rate_monitor.start()

@app.on_event("shutdown")
async def _stop_rate_monitor():
    await rate_monitor.aclose()
