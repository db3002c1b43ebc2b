"""
Rendering of memo deliveries and other bot replies.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from decision_memo.core.config import settings
from decision_memo.core.constants import MEMO_TITLE_MARKER

_TITLE_MARKER = re.compile(r"^#+\s*")
_TRAILING_COLON = re.compile(r":\s*$")

MEMO_READY = "✅ Here's your Decision Memo that you can copy to Notion:"

CLARIFYING_HEADER = "*Clarifying questions❓*\n"
CLARIFYING_FOOTER = "*Please answer each question in order.* You can number your responses for clarity. 👀"

ANALYZING = "I'm analyzing the conversation to determine if I need any clarifying information..."
CONTEXT_RECEIVED = f"Thanks for providing the context. {ANALYZING}"
CONTEXT_ADDED = "Got it, I'll include that as well."
FILE_RECEIVED = (
    "Thanks for uploading the file. "
    "I'm analyzing the content to determine if I need any clarifying information..."
)
GENERATING = "Thanks for the information. I'm now generating your Decision Memo. This may take a moment... ⏳"
PLANNING_FAILED = (
    "I had trouble generating clarifying questions, but I'll create a Decision Memo based on "
    "the information I have. This may take a moment... ⏳"
)
MEMO_FAILED = "Sorry, I encountered an error generating the memo. Please try again or contact the administrator."
MESSAGE_FAILED = "Sorry, there was an error processing your message. Please try again."
COMMAND_FAILED = "Sorry, there was an error starting the Decision Memo process. Please try again."


@dataclass(frozen=True)
class MemoParts:
    """A memo split into its optional title and its body."""

    title: Optional[str]
    body: str


def split_memo(memo: str) -> MemoParts:
    """
    Separate a leading ``# Title`` line from the memo body.

    The marker and any trailing colon are stripped from the title; the body
    is every following line, trimmed. Without a title line the whole text is
    the body.
    """
    lines = memo.split("\n")
    first = lines[0]
    if not first.startswith(MEMO_TITLE_MARKER):
        return MemoParts(title=None, body=memo)

    title = _TRAILING_COLON.sub("", _TITLE_MARKER.sub("", first)).strip()
    body = "\n".join(lines[1:]).strip()
    return MemoParts(title=title or None, body=body)


def _with_feedback(text: str) -> str:
    contact = settings.memo.feedback_contact
    if contact:
        return f"{text} Please share any constructive feedback about this tool directly with {contact}."
    return text


def restart_hint() -> str:
    return (
        f"🔁 Start again anytime with the `{settings.slack.command_name}` command "
        "or via the message shortcut."
    )


def closing_tip() -> str:
    return _with_feedback(
        "🙌 Thanks for using the Decision Memo tool. Be sure to add your memo to the Decision Log "
        "and make any necessary refinements before publishing.\n\n" + restart_hint()
    )


def stop_acknowledgment() -> str:
    return _with_feedback(f"🛑 I've stopped the Decision Memo process. {restart_hint()}")


def render_memo_messages(memo: str) -> list[str]:
    """
    The three messages of a memo delivery: acknowledgment, memo, closing tip.
    """
    parts = split_memo(memo)
    memo_text = f"*{parts.title}*\n\n{parts.body}" if parts.title else parts.body
    return [MEMO_READY, memo_text, closing_tip()]


def render_questions(questions: list[str]) -> str:
    """Numbered list of clarifying questions."""
    lines = [CLARIFYING_HEADER]
    for number, question in enumerate(questions, start=1):
        lines.append(f"{number}) {question}\n\n")
    lines.append(CLARIFYING_FOOTER)
    return "".join(lines)


def blockquote(text: str) -> str:
    return "\n".join(f">{line}" for line in text.split("\n"))


def mention(user_id: Optional[str]) -> str:
    return f"<@{user_id}>" if user_id else "Unknown"


def dm_link(team_id: str, channel_id: str) -> str:
    return f"slack://channel?team={team_id}&id={channel_id}"


def command_started(team_id: str, channel_id: str) -> str:
    return (
        "I'll send you a direct message to help create your Decision Memo. "
        f"<{dm_link(team_id, channel_id)}|Click here to open our conversation>"
    )


def context_prompt() -> str:
    return (
        ":memo: I'll help you create a Decision Memo. *Please paste* the relevant conversation from "
        "Slack, a meeting transcript, or other notes so we can generate the memo. Include as much "
        "context as might be helpful.\n\n*Note:* If your transcript is too long to paste into Slack, "
        'you can upload a .txt file instead. (Respond with "stop" at any time to terminate this process)'
    )


def thread_notification(user_id: str, team_id: str, channel_id: str) -> str:
    return (
        f"<@{user_id}> :memo: I'm creating a Decision Memo based on this thread. "
        f"<{dm_link(team_id, channel_id)}|Click here to open our conversation> "
        "and I'll guide you through the process."
    )


def shortcut_intro(channel_id: str, in_thread: bool) -> str:
    source = "the thread in" if in_thread else "a message from"
    return (
        f":memo: I'm creating a Decision Memo based on {source} <#{channel_id}>. "
        '(Respond with "stop" at any time to terminate this process)'
    )


def capture_preview(text: str, in_thread: bool) -> str:
    heading = (
        "I've captured the thread starting with this message:" if in_thread
        else "I've captured the message:"
    )
    return f"{heading}\n\n{blockquote(text)}\n\n{ANALYZING}"


def shortcut_failed(user_id: str) -> str:
    return (
        f":warning: <@{user_id}> Sorry, there was an error processing your Decision Memo request. "
        "Please try again."
    )
