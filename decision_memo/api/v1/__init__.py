"""
API v1 routers.
"""

from decision_memo.api.v1 import health, slack

__all__ = ["health", "slack"]
