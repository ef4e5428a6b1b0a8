# src/app/main.py
from __future__ import annotations
import logging
import sys
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.app.config import settings
from src.app.routers.auth import router as auth_router
from src.app.routers.partnerships import router as partnerships_router
from src.app.routers.recipes import router as recipes_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Recipe Partners API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(partnerships_router)
app.include_router(recipes_router)


@app.on_event("startup")
async def startup() -> None:
    for problem in settings.validate_store():
        logger.warning("Store configuration: %s", problem)


@app.get("/health")
def health():
    return {"ok": True, "store": settings.STORE_BACKEND}
