"""
System-wide constants for the Decision Memo service.
"""

from enum import Enum


# =============================================================================
# Enums
# =============================================================================


class Stage(str, Enum):
    """Conversation stages. A session is deleted after GENERATING."""

    STARTED = "started"
    ASKING_QUESTIONS = "asking_questions"
    GENERATING = "generating"


class Effect(str, Enum):
    """Side effect the orchestrator must run for an inbound DM."""

    IGNORE = "ignore"
    CANCEL = "cancel"
    INGEST_FILE = "ingest_file"
    PLAN_FROM_TEXT = "plan_from_text"
    EXTEND_CONTEXT = "extend_context"
    COMPOSE_WITH_ANSWERS = "compose_with_answers"


class ParseStrategy(str, Enum):
    """Which strategy recovered the clarifying questions."""

    JSON = "json"
    REGEX = "regex"
    NONE = "none"


# =============================================================================
# API Constants
# =============================================================================

API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}"
SLACK_PREFIX = "/slack"

# Slack rejects requests whose timestamp drifts more than this
SLACK_SIGNATURE_VERSION = "v0"
SLACK_SIGNATURE_MAX_AGE = 300  # seconds

# =============================================================================
# Conversation Constants
# =============================================================================

STOP_KEYWORD = "stop"

CATCH_ALL_QUESTION = "Is there anything else I should know about this decision before proceeding?"

# Filetypes Slack reports for plain-text uploads
ACCEPTED_FILE_TYPES = frozenset({"text", "txt", "plain"})

TRUNCATION_NOTICE = (
    "\n\n[Note: File was truncated as it exceeded maximum length. "
    "Only the first portion is being processed.]"
)

# Message subtypes that still carry human content
HUMAN_MESSAGE_SUBTYPES = frozenset({"file_share"})

# =============================================================================
# Memo Constants
# =============================================================================

MEMO_TITLE_MARKER = "#"

MEMO_SECTION_HEADINGS = [
    "*What is the choice you made?*",
    "*Why make this decision? What were the factors involved?*",
    "*What are the risks of making this decision?*",
    "*What is the compensation / reward for taking those risks?*",
    "*What other choices did you consider?*",
]

FALLBACK_MEMO_TITLE = "Decision Memo"

# =============================================================================
# Cache Keys
# =============================================================================

CACHE_PREFIX = "decision_memo"
EVENT_CACHE_KEY = f"{CACHE_PREFIX}:event:{{event_id}}"
