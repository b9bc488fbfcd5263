from fastapi import FastAPI

from burnledger.core.db import Base, engine
from burnledger.core.logs import configure_logging
from burnledger.api.v1.health import router as health_router
from burnledger.api.v1.burned import router as burned_router
from burnledger.api.v1.profile import router as profile_router
from burnledger.api.v1.body_metrics import router as body_metrics_router

configure_logging()

app = FastAPI(title="Burn Ledger", version="1.0.0")

if engine:
    Base.metadata.create_all(bind=engine)

app.include_router(health_router, prefix="/v1")
app.include_router(burned_router, prefix="/v1")
app.include_router(profile_router, prefix="/v1")
app.include_router(body_metrics_router, prefix="/v1")
