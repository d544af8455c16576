import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .routers import agent
from .schemas import HealthResponse
from .services.retrieval import build_services
from .services.seeder import InitState, initialize_finance_data

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ───────────────────────────────────────────────────────────────
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.state.services = build_services()
    app.state.init_state = InitState()

    # Seed the vector store once, before the first request is accepted.
    if config.SEED_ON_STARTUP:
        await initialize_finance_data(app.state.services, app.state.init_state)

    yield
    # ── Shutdown (nothing to release; clients are per-call) ───────────────────


app = FastAPI(
    title="Finance Agent",
    description="LLM finance assistant: transaction summaries and chart data from a vector store.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(agent.router)


@app.get("/health", response_model=HealthResponse, tags=["meta"])
def health():
    return {"status": "ok", "version": VERSION}
