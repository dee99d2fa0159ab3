"""Challenge controller for powtap.

Owns the challenge state and the upstream endpoint behind one reader/writer
lock, and tunes difficulty to the observed solve rate:
- a period with no accepted solutions relaxes difficulty by one step
- reaching the per-salt quota tightens difficulty by one step
Difficulty never drops below the configured starting difficulty.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from powtap.blockchain.networks import ChainEndpoint
from powtap.errors import DuplicateSolutionError, InvalidSolutionError, SaltExpiredError
from powtap.observability.metrics import DIFFICULTY, SALT_ROTATIONS

from .pow_utils import new_salt, solution_id, verify
from .rwlock import ReadWriteLock
from .timer import RotationTimer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Challenge:
    """Snapshot of the puzzle clients must solve."""

    salt: bytes
    difficulty: int


@dataclass
class ChallengeState:
    """Mutable challenge state, guarded by the controller lock."""

    salt: bytes
    difficulty: int
    period_start: float
    consumed: set[str] = field(default_factory=set)


class ChallengeController:
    """Issues challenges and rotates salts.

    Parameters
    ----------
    endpoint : ChainEndpoint
        Connected upstream endpoint.
    start_difficulty : int
        Starting difficulty, also the floor difficulty can decay to.
    solutions_per_salt : int
        Accepted solutions per period that trigger an early rotation.
    target_duration_per_salt : float
        Target period length in seconds.
    clock : Callable[[], float]
        Monotonic clock used for period bookkeeping.
    """

    def __init__(
        self,
        endpoint: ChainEndpoint,
        start_difficulty: int = 25,
        solutions_per_salt: int = 10,
        target_duration_per_salt: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._endpoint = endpoint
        self._start_difficulty = start_difficulty
        self._solutions_per_salt = solutions_per_salt
        self._target_duration = target_duration_per_salt
        self._clock = clock
        self._lock = ReadWriteLock()
        self._timer = RotationTimer(self.reevaluate)
        self._task: asyncio.Task | None = None
        self._state = self._initial_state()
        DIFFICULTY.set(self._state.difficulty)

    def _initial_state(self) -> ChallengeState:
        return ChallengeState(
            salt=new_salt(),
            difficulty=self._start_difficulty,
            period_start=self._clock(),
        )

    @property
    def endpoint(self) -> ChainEndpoint:
        """Current upstream endpoint."""
        return self._endpoint

    @property
    def state(self) -> ChallengeState:
        """Live challenge state. Read it under the lock for a consistent view."""
        return self._state

    @property
    def timer(self) -> RotationTimer:
        """The rotation timer."""
        return self._timer

    @property
    def target_duration(self) -> float:
        """Target period length in seconds."""
        return self._target_duration

    @property
    def is_running(self) -> bool:
        """Check if the rotation loop is running."""
        return self._task is not None

    async def current_challenge(self) -> Challenge:
        """Get the current salt and difficulty.

        Returns
        -------
        Challenge
            Snapshot taken under the shared lock.
        """
        async with self._lock.read():
            return Challenge(salt=self._state.salt, difficulty=self._state.difficulty)

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[ChallengeState]:
        """Hold the controller lock in exclusive mode."""
        async with self._lock.write():
            yield self._state

    async def start(self) -> None:
        """Arm the rotation timer and start dispatching it."""
        if self._task is not None:
            logger.warning("Challenge controller already running")
            return

        self._timer.set_timeout_in(self._target_duration)
        self._task = asyncio.create_task(self._timer.dispatch())
        logger.info(
            "Challenge controller started",
            extra={
                "difficulty": self._state.difficulty,
                "interval_seconds": self._target_duration,
            },
        )

    async def stop(self) -> None:
        """Stop the rotation loop."""
        if self._task is None:
            return

        self._timer.stop()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Challenge controller stopped")

    async def reevaluate(self) -> None:
        """Timed re-evaluation: decay difficulty on an idle period and rotate."""
        async with self._lock.write():
            elapsed = self._clock() - self._state.period_start
            if elapsed < self._target_duration / 2:
                # An early rotation already restarted the period
                if not self._timer.pending:
                    self._timer.set_timeout_in(self._target_duration - elapsed)
                return

            if not self._state.consumed and self._state.difficulty > self._start_difficulty:
                self._state.difficulty -= 1
                logger.info(
                    "Decreasing faucet difficulty",
                    extra={"difficulty": self._state.difficulty},
                )
            self._rotate("timer")

    def admit_locked(self, salt: bytes, solution: bytes) -> str:
        """Validate a solution against the current challenge.

        Must be called while holding ``exclusive()``.

        Returns
        -------
        str
            The solution identifier.

        Raises
        ------
        SaltExpiredError
            If ``salt`` is not the current salt.
        InvalidSolutionError
            If the work is insufficient.
        DuplicateSolutionError
            If the solution was already accepted this period.
        """
        if salt != self._state.salt:
            raise SaltExpiredError()
        if not verify(salt, solution, self._state.difficulty):
            raise InvalidSolutionError()
        key = solution_id(solution)
        if key in self._state.consumed:
            raise DuplicateSolutionError()
        return key

    def commit_locked(self, key: str) -> bool:
        """Mark a solution consumed and rotate early once the quota is reached.

        Must be called while holding ``exclusive()``.

        Returns
        -------
        bool
            True if the quota triggered a rotation.
        """
        self._state.consumed.add(key)
        if len(self._state.consumed) < self._solutions_per_salt:
            return False

        self._state.difficulty += 1
        logger.info(
            "Increasing faucet difficulty",
            extra={"difficulty": self._state.difficulty},
        )
        self._timer.cancel()
        self._rotate("quota")
        return True

    def reset_locked(self, endpoint: ChainEndpoint) -> None:
        """Swap the endpoint and restart challenge state from scratch.

        Must be called while holding ``exclusive()``.
        """
        self._endpoint = endpoint
        self._state = self._initial_state()
        self._timer.cancel()
        self._timer.set_timeout_in(self._target_duration)
        DIFFICULTY.set(self._state.difficulty)
        SALT_ROTATIONS.labels(reason="reconfigure").inc()

    def _rotate(self, reason: str) -> None:
        self._state.period_start = self._clock()
        self._state.salt = new_salt()
        self._state.consumed.clear()
        self._timer.set_timeout_in(self._target_duration)
        DIFFICULTY.set(self._state.difficulty)
        SALT_ROTATIONS.labels(reason=reason).inc()
        logger.info(
            "Salt rotated",
            extra={"reason": reason, "difficulty": self._state.difficulty},
        )
