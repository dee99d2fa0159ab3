"""Core powtap components."""

from .controller import Challenge, ChallengeController, ChallengeState
from .rwlock import ReadWriteLock
from .timer import RotationTimer
from .wallet import EnvironmentWallet, WalletProvider

__all__ = [
    "Challenge",
    "ChallengeController",
    "ChallengeState",
    "EnvironmentWallet",
    "ReadWriteLock",
    "RotationTimer",
    "WalletProvider",
]
