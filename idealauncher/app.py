# app.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from idealauncher.chat import router as chat_router
from idealauncher.config import CORS_ORIGINS, DEFAULT_MODEL, LLM_MODELS, LOG_LEVEL
from idealauncher.domains import router as domains_router
from idealauncher.errors import register_exception_handlers
from idealauncher.exports import router as exports_router
from idealauncher.ideas import router as ideas_router, version_outbox
from idealauncher.planning import router as planning_router
from idealauncher.research import router as research_router
from idealauncher.scores import router as scores_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Give queued version snapshots a chance to land before exit
    await version_outbox.flush()


# --- Initialize and configure FastAPI ---
app = FastAPI(title="IdeaLauncher", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(ideas_router)
app.include_router(chat_router)
app.include_router(research_router)
app.include_router(planning_router)
app.include_router(scores_router)
app.include_router(exports_router)
app.include_router(domains_router)


@app.get("/")
async def health():
    return JSONResponse({"status": "ok", "service": "idealauncher"})


@app.get("/api/models")
async def get_models():
    """Available LLM models"""
    return JSONResponse({"models": LLM_MODELS, "default": DEFAULT_MODEL})
