"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from rethoric.api.deps import SessionDep
from rethoric.llm.exceptions import LLMProviderNotConfiguredError
from rethoric.llm.factory import get_llm

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Basic health check - returns ok if the service is running."""
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(session: SessionDep) -> dict[str, Any]:
    """
    Readiness check - verifies dependent services.

    Checks:
    - Database: a trivial query succeeds
    - LLM: a provider is configured (the mentor still answers with a
      fallback when it is not, so this only degrades status)
    """
    services: dict[str, str] = {}
    all_ok = True

    try:
        await session.execute(text("SELECT 1"))
        services["database"] = "ok"
    except Exception as e:
        services["database"] = f"error: {type(e).__name__}"
        all_ok = False

    try:
        llm = await get_llm()
        services["llm"] = f"ok ({llm.provider_name})"
    except LLMProviderNotConfiguredError:
        services["llm"] = "error: not configured"
        all_ok = False
    except Exception as e:
        services["llm"] = f"error: {type(e).__name__}"
        all_ok = False

    return {"status": "ok" if all_ok else "degraded", "services": services}
