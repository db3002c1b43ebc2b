"""
Slack HTTP endpoints: slash command, interactivity and the Events API.

Slack expects an acknowledgment within three seconds, so every handler
acknowledges immediately and runs the conversation work as a background task.
"""

import json
from typing import Any
from urllib.parse import parse_qs

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response

from decision_memo.api.deps import get_cache, get_orchestrator, verify_slack_request
from decision_memo.core.config import settings
from decision_memo.core.constants import EVENT_CACHE_KEY
from decision_memo.core.logging import get_logger
from decision_memo.domain.events import CommandInvoked, DirectMessageReceived, ShortcutInvoked
from decision_memo.orchestration.conversation import ConversationOrchestrator
from decision_memo.repositories.cache_repo import InMemoryCacheRepository

logger = get_logger(__name__)

router = APIRouter()


def _parse_form(body: bytes) -> dict[str, str]:
    """Flatten a form-encoded body to single values."""
    return {key: values[0] for key, values in parse_qs(body.decode("utf-8")).items()}


def _ack() -> Response:
    return Response(status_code=200)


@router.post("/commands")
async def slash_command(
    background_tasks: BackgroundTasks,
    body: bytes = Depends(verify_slack_request),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Start a DM session from the slash command."""
    form = _parse_form(body)
    command = form.get("command")
    if command != settings.slack.command_name:
        logger.info("Ignoring unknown command", command=command)
        return _ack()

    try:
        event = CommandInvoked.from_slack_payload(form)
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail="Malformed command payload") from e

    logger.info("Slash command received", user_id=event.user_id)
    background_tasks.add_task(orchestrator.handle_command, event)
    return _ack()


@router.post("/interactivity")
async def interactivity(
    background_tasks: BackgroundTasks,
    body: bytes = Depends(verify_slack_request),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Handle the message shortcut."""
    form = _parse_form(body)
    try:
        payload: dict[str, Any] = json.loads(form["payload"])
    except (KeyError, json.JSONDecodeError) as e:
        raise HTTPException(status_code=400, detail="Missing interactivity payload") from e

    if (
        payload.get("type") != "message_action"
        or payload.get("callback_id") != settings.slack.shortcut_callback_id
    ):
        logger.info(
            "Ignoring interaction",
            interaction_type=payload.get("type"),
            callback_id=payload.get("callback_id"),
        )
        return _ack()

    try:
        event = ShortcutInvoked.from_slack_payload(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail="Malformed shortcut payload") from e

    logger.info("Message shortcut received", user_id=event.user_id, channel_id=event.channel_id)
    background_tasks.add_task(orchestrator.handle_shortcut, event)
    return _ack()


@router.post("/events")
async def events(
    background_tasks: BackgroundTasks,
    body: bytes = Depends(verify_slack_request),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    cache: InMemoryCacheRepository = Depends(get_cache),
) -> Any:
    """Events API endpoint: URL verification and DM message events."""
    try:
        envelope: dict[str, Any] = json.loads(body)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e

    envelope_type = envelope.get("type")
    if envelope_type == "url_verification":
        return {"challenge": envelope.get("challenge")}

    if envelope_type != "event_callback":
        return _ack()

    # Slack redelivers events it thinks were not acknowledged
    event_id = envelope.get("event_id")
    if event_id and not await cache.add(EVENT_CACHE_KEY.format(event_id=event_id)):
        logger.info("Ignoring duplicate event delivery", event_id=event_id)
        return _ack()

    event = DirectMessageReceived.from_slack_event(envelope.get("event") or {})
    if event is None:
        return _ack()

    background_tasks.add_task(orchestrator.handle_direct_message, event)
    return _ack()
