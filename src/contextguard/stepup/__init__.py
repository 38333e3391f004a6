"""Step-up (one-time passcode) flow for ContextGuard."""

from .store import OTPStore, Sweeper
from .service import CodeSender, LoggingSender, StepUpChallenge, StepUpService

__all__ = [
    "OTPStore", "Sweeper", "CodeSender", "LoggingSender",
    "StepUpChallenge", "StepUpService",
]
