"""Tests for the challenge controller."""

import asyncio

import pytest
from conftest import NODE_B, make_gateway, solve, unsolve

from powtap.blockchain.networks import ChainEndpoint
from powtap.core.controller import Challenge, ChallengeController
from powtap.core.pow_utils import SALT_LENGTH, solution_id
from powtap.errors import DuplicateSolutionError, InvalidSolutionError, SaltExpiredError


async def accept(controller: ChallengeController, start: int = 0) -> bytes:
    """Admit and commit one fresh solution, returning it."""
    async with controller.exclusive() as state:
        solution = solve(state.salt, state.difficulty, start)
        key = controller.admit_locked(state.salt, solution)
        controller.commit_locked(key)
    return solution


def distinct_solutions(salt: bytes, difficulty: int, count: int) -> list[bytes]:
    """Find ``count`` distinct valid solutions."""
    solutions = []
    start = 0
    for _ in range(count):
        solution = solve(salt, difficulty, start)
        solutions.append(solution)
        start = int.from_bytes(solution, "big") + 1
    return solutions


class TestInitialState:
    """Tests for controller construction."""

    def test_initial_state(self, controller):
        """Starts at the floor difficulty with a fresh salt and nothing consumed."""
        assert controller.state.difficulty == 2
        assert len(controller.state.salt) == SALT_LENGTH
        assert controller.state.consumed == set()
        assert controller.state.period_start == 1000.0
        assert not controller.is_running

    @pytest.mark.asyncio
    async def test_current_challenge(self, controller):
        """Current challenge mirrors the live state."""
        challenge = await controller.current_challenge()

        assert challenge == Challenge(salt=controller.state.salt, difficulty=2)

    @pytest.mark.asyncio
    async def test_challenge_is_stable_between_rotations(self, controller):
        """Repeated reads return the same salt."""
        first = await controller.current_challenge()
        second = await controller.current_challenge()

        assert first == second


class TestAdmit:
    """Tests for solution admission."""

    @pytest.mark.asyncio
    async def test_admit_valid(self, controller):
        """A valid solution is admitted and identified by its hash."""
        async with controller.exclusive() as state:
            solution = solve(state.salt, state.difficulty)
            key = controller.admit_locked(state.salt, solution)

        assert key == solution_id(solution)
        # Admission alone does not consume
        assert controller.state.consumed == set()

    @pytest.mark.asyncio
    async def test_admit_wrong_salt(self, controller):
        """A solution for another salt is rejected as expired."""
        other_salt = bytes(SALT_LENGTH)
        solution = solve(other_salt, 2)

        async with controller.exclusive():
            with pytest.raises(SaltExpiredError):
                controller.admit_locked(other_salt, solution)

    @pytest.mark.asyncio
    async def test_admit_insufficient_work(self, controller):
        """A solution below difficulty is rejected as invalid."""
        async with controller.exclusive() as state:
            solution = unsolve(state.salt, state.difficulty)
            with pytest.raises(InvalidSolutionError):
                controller.admit_locked(state.salt, solution)

    @pytest.mark.asyncio
    async def test_admit_duplicate(self, controller):
        """A solution already consumed this period is rejected."""
        solution = await accept(controller)

        async with controller.exclusive() as state:
            with pytest.raises(DuplicateSolutionError):
                controller.admit_locked(state.salt, solution)


class TestQuotaRotation:
    """Tests for early rotation when the quota is reached."""

    @pytest.mark.asyncio
    async def test_below_quota_keeps_salt(self, controller):
        """Accepting fewer solutions than the quota keeps the period."""
        salt = controller.state.salt
        s1, s2 = distinct_solutions(salt, 2, 2)

        async with controller.exclusive():
            assert not controller.commit_locked(controller.admit_locked(salt, s1))
            assert not controller.commit_locked(controller.admit_locked(salt, s2))

        assert controller.state.salt == salt
        assert len(controller.state.consumed) == 2

    @pytest.mark.asyncio
    async def test_quota_rotates_and_raises_difficulty(self, controller, clock):
        """The quota-th solution rotates the salt and raises difficulty."""
        salt = controller.state.salt
        clock.advance(10)

        async with controller.exclusive():
            rotated = [
                controller.commit_locked(controller.admit_locked(salt, s))
                for s in distinct_solutions(salt, 2, 3)
            ]

        assert rotated == [False, False, True]
        assert controller.state.difficulty == 3
        assert controller.state.salt != salt
        assert controller.state.consumed == set()
        assert controller.state.period_start == 1010.0
        assert controller.timer.pending

    @pytest.mark.asyncio
    async def test_old_salt_expired_after_rotation(self, controller):
        """Solutions for the pre-rotation salt are rejected."""
        salt = controller.state.salt
        solutions = distinct_solutions(salt, 2, 4)

        async with controller.exclusive():
            for s in solutions[:3]:
                controller.commit_locked(controller.admit_locked(salt, s))
            with pytest.raises(SaltExpiredError):
                controller.admit_locked(salt, solutions[3])


class TestReevaluate:
    """Tests for timed re-evaluation."""

    @pytest.mark.asyncio
    async def test_idle_period_at_floor(self, controller, clock):
        """An idle period at the floor rotates without lowering difficulty."""
        salt = controller.state.salt
        clock.advance(60)

        await controller.reevaluate()

        assert controller.state.difficulty == 2
        assert controller.state.salt != salt
        assert controller.timer.pending

    @pytest.mark.asyncio
    async def test_idle_period_decays(self, controller, clock):
        """An idle period above the floor lowers difficulty by one."""
        controller.state.difficulty = 5
        clock.advance(60)

        await controller.reevaluate()

        assert controller.state.difficulty == 4

    @pytest.mark.asyncio
    async def test_busy_period_keeps_difficulty(self, controller, clock):
        """A period with accepted solutions rotates at the same difficulty."""
        controller.state.difficulty = 5
        await accept(controller)
        clock.advance(60)

        await controller.reevaluate()

        assert controller.state.difficulty == 5
        assert controller.state.consumed == set()

    @pytest.mark.asyncio
    async def test_recent_rotation_is_noop(self, controller, clock):
        """Less than half a period after a rotation nothing changes."""
        salt = controller.state.salt
        controller.state.difficulty = 5
        clock.advance(20)

        await controller.reevaluate()

        assert controller.state.salt == salt
        assert controller.state.difficulty == 5

    @pytest.mark.asyncio
    async def test_noop_rearms_idle_timer(self, controller, clock):
        """The no-op path re-arms the timer for the rest of the period."""
        controller.timer.cancel()
        clock.advance(20)

        await controller.reevaluate()

        assert controller.timer.pending
        assert 39 < controller.timer.remaining <= 40

    @pytest.mark.asyncio
    async def test_floor_two_quota_three_scenario(self, controller, clock):
        """Difficulty climbs on a full period and relaxes back to the floor."""
        for start in (0, 1000, 2000):
            await accept(controller, start)
        assert controller.state.difficulty == 3

        clock.advance(60)
        await controller.reevaluate()
        assert controller.state.difficulty == 2

        clock.advance(60)
        await controller.reevaluate()
        assert controller.state.difficulty == 2


class TestReset:
    """Tests for endpoint reset."""

    @pytest.mark.asyncio
    async def test_reset_restores_initial_state(self, controller, clock):
        """Reset swaps the endpoint and restarts the challenge."""
        controller.state.difficulty = 7
        await accept(controller)
        salt = controller.state.salt
        new_endpoint = ChainEndpoint(
            rpc_endpoint=NODE_B, gateway=make_gateway(), network_id=1, chain_id=1
        )
        clock.advance(5)

        async with controller.exclusive():
            controller.reset_locked(new_endpoint)

        assert controller.endpoint is new_endpoint
        assert controller.state.difficulty == 2
        assert controller.state.salt != salt
        assert controller.state.consumed == set()
        assert controller.state.period_start == 1005.0
        assert controller.timer.pending


class TestLifecycle:
    """Tests for start and stop."""

    @pytest.mark.asyncio
    async def test_start_stop(self, controller):
        """Start arms the timer and stop tears the loop down."""
        await controller.start()
        assert controller.is_running
        assert controller.timer.pending

        await controller.stop()
        assert not controller.is_running
        assert not controller.timer.pending

    @pytest.mark.asyncio
    async def test_double_start(self, controller):
        """Starting twice keeps a single loop."""
        await controller.start()
        task = controller._task
        await controller.start()

        assert controller._task is task
        await controller.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, controller):
        """Stopping an idle controller is harmless."""
        await controller.stop()
        assert not controller.is_running

    @pytest.mark.asyncio
    async def test_timer_rotates_salt(self, endpoint):
        """The running loop rotates the salt when the period ends."""
        controller = ChallengeController(
            endpoint, start_difficulty=1, target_duration_per_salt=0.05
        )
        salt = controller.state.salt

        await controller.start()
        await asyncio.sleep(0.2)
        await controller.stop()

        assert controller.state.salt != salt
