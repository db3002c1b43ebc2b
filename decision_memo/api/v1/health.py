"""
Health check endpoints.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from decision_memo.api.deps import get_orchestrator
from decision_memo.core.config import settings
from decision_memo.core.logging import get_logger
from decision_memo.orchestration.conversation import ConversationOrchestrator

logger = get_logger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Basic health check endpoint.
    Returns application status.
    """
    return {
        "status": "healthy",
        "app": settings.app_name,
        "environment": settings.app_env,
        "timestamp": _now(),
    }


@router.get("/health/ready")
async def readiness_check(
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Readiness check endpoint.
    Reports which credentials are configured and the degradation counters.
    """
    environment = settings.environment_report()
    checks = {
        "app": True,
        "slack_bot_token": environment["SLACK_BOT_TOKEN"],
        "slack_signing_secret": environment["SLACK_SIGNING_SECRET"],
        "anthropic_api_key": environment["ANTHROPIC_API_KEY"],
    }

    all_healthy = all(checks.values())

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
        "stats": await orchestrator.stats(),
        "timestamp": _now(),
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.
    Simple check that the application is running.
    """
    return {"status": "alive"}
