"""Domain models, ports, and errors for the collaborative story."""

from haunted_thread.domain.errors import (
    CandidateSourceUnavailableError,
    ConcurrencyConflictError,
    IllegalTransitionError,
    StoreUnavailableError,
    StoryCorruptionError,
    TransientExternalError,
)
from haunted_thread.domain.models import (
    AppendFallbackSentence,
    AppendSentence,
    Candidate,
    ContributionLine,
    LeaderboardEntry,
    NoOp,
    RoundDecision,
    RoundRecord,
    RoundWindow,
    Story,
    StoryStatus,
    SubmissionNotice,
    UserContribution,
    VoteReceipt,
    validate_story,
)
from haunted_thread.domain.ports import Broadcaster, CandidateSource, KeyValueStore

__all__ = [
    "AppendFallbackSentence",
    "AppendSentence",
    "Broadcaster",
    "Candidate",
    "CandidateSource",
    "CandidateSourceUnavailableError",
    "ConcurrencyConflictError",
    "ContributionLine",
    "IllegalTransitionError",
    "KeyValueStore",
    "LeaderboardEntry",
    "NoOp",
    "RoundDecision",
    "RoundRecord",
    "RoundWindow",
    "StoreUnavailableError",
    "Story",
    "StoryCorruptionError",
    "StoryStatus",
    "SubmissionNotice",
    "TransientExternalError",
    "UserContribution",
    "VoteReceipt",
    "validate_story",
]
