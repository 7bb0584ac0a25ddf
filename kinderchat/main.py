"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

from kinderchat.api.chat import router as chat_router
from kinderchat.config import get_settings
from kinderchat.db.session import engine

# Configure logging to stdout
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate settings and create database tables on startup."""
    settings.validate()
    # Import models to register them with SQLModel
    from kinderchat.models import Activity, ChatMessage, Conversation, Recommendation  # noqa: F401
    SQLModel.metadata.create_all(engine)
    yield

app = FastAPI(
    title="KinderDag Activity Assistant API",
    description="Guided chat that recommends family activities",
    version="1.0.0",
    lifespan=lifespan,
)

cors_origins = [origin for origin in {settings.FRONTEND_URL, "http://localhost:8081"} if origin]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(chat_router)


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
