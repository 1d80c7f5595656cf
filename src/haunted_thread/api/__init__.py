"""Public API surface for HTTP serving and Python-first interfaces."""

from haunted_thread.api.app import create_app
from haunted_thread.api.contracts import (
    CurrentStoryResponse,
    LeaderboardResponse,
    StoryResponse,
    SubmissionResponse,
    TickResponse,
)
from haunted_thread.api.python_interface import HauntedThreadClient

__all__ = [
    "CurrentStoryResponse",
    "HauntedThreadClient",
    "LeaderboardResponse",
    "StoryResponse",
    "SubmissionResponse",
    "TickResponse",
    "create_app",
]
