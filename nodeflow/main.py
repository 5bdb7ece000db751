from __future__ import annotations

"""FastAPI application entrypoint."""

import logging

from fastapi import FastAPI

from nodeflow import __version__, config
from nodeflow.api import router
from nodeflow.engine.persistence import persistence
from nodeflow.workflows.sample import seed_sample_workflow

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="nodeflow",
    description="Visual workflow graphs: node catalog, workflow documents, and a sequential execution engine.",
    version=__version__,
)
app.include_router(router)


@app.on_event("startup")
async def startup_event() -> None:
    if config.SEED_SAMPLE:
        seed_sample_workflow(persistence)


@app.get("/health", tags=["system"])
def health() -> dict:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("nodeflow.main:app", host=config.API_HOST, port=config.API_PORT, reload=True)
