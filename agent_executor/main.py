import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .adapters.entry.http.admin_router import router as admin_router
from .workers.execution_supervisor import ExecutionSupervisor


def _setup_logging():
    """
    Configure basic logging.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


supervisor = ExecutionSupervisor()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context for startup/shutdown lifecycle.
    """
    _setup_logging()
    logging.getLogger(__name__).info("Starting agent-executor (lifespan startup)...")
    await supervisor.start()

    app.state.supervisor = supervisor

    try:
        yield
    finally:
        logging.getLogger(__name__).info("Shutting down agent-executor (lifespan shutdown)...")
        await supervisor.stop()


app = FastAPI(title="agent-executor", version="0.1.0", lifespan=lifespan)
app.include_router(admin_router)


@app.get("/healthz")
async def healthz():
    """
    Liveness probe endpoint.
    """
    return {"status": "ok"}
