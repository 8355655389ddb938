"""
Charla - Conversational orchestration engine
FastAPI Backend with LLM + Tools
"""

from contextlib import asynccontextmanager
from pathlib import Path
import logging
import uuid

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import runtime_config
from errors import CharlaError, ConfigurationError, LLMError, ToolArgumentsError, http_error_body, log_error
from logging_config import setup_logging
from routers import agent
from routers.chat_orchestration import DomainRouter, LLMOrchestrator, ToolDispatcher
from services.context_builder import ContextBuilder
from services.llm_client import LLMClient
from services.sessions import SessionManager
from services.store import ChatStore
from tools.registry import ToolRegistry, register_all_tools

setup_logging()
logger = logging.getLogger(__name__)

# Instance ID - changes on every startup, used by frontend to detect restarts
INSTANCE_ID = str(uuid.uuid4())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup
    try:
        runtime_config.require_openai_key()
    except ConfigurationError as e:
        logger.warning(f"{e.message}; every chat request will fail until OPENAI_API_KEY is set")

    store = ChatStore(Path(runtime_config.database_path))
    purged = store.purge_expired_sessions()
    if purged:
        logger.info(f"Startup: removed {purged} expired sessions")

    client = LLMClient(
        api_key=runtime_config.openai_api_key,
        base_url=runtime_config.openai_base_url,
        timeout=runtime_config.llm_timeout,
    )
    http_client = httpx.AsyncClient(timeout=runtime_config.weather_timeout_s)
    sessions = SessionManager(store, ttl_days=runtime_config.session_ttl_days)

    register_all_tools()
    logger.info(f"Tools registered: {', '.join(ToolRegistry.get_all_tools())}")

    dispatcher = ToolDispatcher(store, sessions, runtime_config, http_client=http_client)
    app.state.store = store
    app.state.sessions = sessions
    app.state.llm_client = client
    app.state.http_client = http_client
    app.state.orchestrator = LLMOrchestrator(
        client=client,
        store=store,
        sessions=sessions,
        dispatcher=dispatcher,
        domain_router=DomainRouter(client, runtime_config),
        context_builder=ContextBuilder(client, store, runtime_config),
        runtime_config=runtime_config,
    )
    logger.info(f"Charla ready (env={runtime_config.charla_env}, model={runtime_config.model_chat})")

    yield

    # Shutdown
    await http_client.aclose()
    logger.info("Charla signing off")


app = FastAPI(
    title="Charla",
    description="Conversational assistant with tools, sessions and memory",
    version="1.0.0",
    lifespan=lifespan,
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Referrer policy for privacy
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=runtime_config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers: generic bodies only, detail goes to the log
def _status_for(error: CharlaError) -> int:
    if isinstance(error, (LLMError, ToolArgumentsError)):
        return 502
    return 500


@app.exception_handler(CharlaError)
async def charla_error_handler(request: Request, exc: CharlaError):
    status = _status_for(exc)
    log_error(logger, exc, context=f"{request.method} {request.url.path}", include_traceback=False)
    return JSONResponse(status_code=status, content=http_error_body(exc))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} failed unexpectedly: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=http_error_body(exc))


# API Routers
app.include_router(agent.router, prefix="/api", tags=["agent"])


@app.get("/health")
async def health(request: Request):
    """Health check - store reachability and completion service configuration."""
    checks = {}

    store = getattr(request.app.state, "store", None)
    checks["store"] = "ok" if store is not None and store.ping() else "down"

    client = getattr(request.app.state, "llm_client", None)
    checks["llm"] = "configured" if client is not None and client.configured else "unconfigured"

    all_ok = checks["store"] == "ok" and checks["llm"] == "configured"
    return {
        "status": "healthy" if all_ok else "degraded",
        "service": "charla",
        "instance_id": INSTANCE_ID,
        "checks": checks,
        "tools": len(ToolRegistry.get_all_tools()),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
