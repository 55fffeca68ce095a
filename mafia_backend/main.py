from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mafia_backend.api.rest import router as rest_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Mafia Backend",
    version="0.1.0",
    description="Moderator-driven Mafia game backend with confirmed night actions and persisted rounds.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rest_router)


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "service": "mafia-backend",
    }


@app.on_event("startup")
async def log_startup() -> None:
    logger.info("mafia backend started")
