"""
Slack bot that turns conversations into structured decision memos.
"""

__version__ = "1.0.0"
