"""The reflection loop — execute, critique, revise until valid or out of budget."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from reflectloop.errors import (
    ExecutionEnvironmentError,
    MalformedResponse,
    ServiceUnavailable,
)
from reflectloop.execution.executor import Executor
from reflectloop.model.artifact import Artifact, ExecutionResult
from reflectloop.model.history import (
    IterationRecord,
    RunHistory,
    StagnationCheck,
    identical_content,
)
from reflectloop.reflect.critic import Critic
from reflectloop.reflect.reviser import Reviser
from reflectloop.session.history_log import HistoryLog
from reflectloop.session.wire import Wire

logger = logging.getLogger(__name__)

T = TypeVar("T")

Validator = Callable[[ExecutionResult], bool]


class LoopState(enum.Enum):
    INIT = "init"
    EXECUTING = "executing"
    CRITIQUING = "critiquing"
    REVISING = "revising"
    DONE = "done"
    FAILED = "failed"


class RunOutcome(enum.Enum):
    """How did the run end?"""

    DONE = "done"  # An artifact passed validation
    FAILED = "failed"  # See FailureReason


class FailureReason(enum.Enum):
    BUDGET_EXHAUSTED = "budget_exhausted"
    NO_PROGRESS = "no_progress"
    SERVICE_UNAVAILABLE = "service_unavailable"
    ENVIRONMENT_ERROR = "environment_error"
    INTERNAL_ERROR = "internal_error"  # unexpected failure, see the log


def succeeded(result: ExecutionResult) -> bool:
    """Default validation predicate: the artifact ran without error."""
    return result.success


def stdout_contains(expected: str) -> Validator:
    """Validation predicate: successful run whose stdout contains ``expected``."""

    def valid(result: ExecutionResult) -> bool:
        return result.success and expected in result.stdout

    return valid


@dataclass
class RunResult:
    """What a run hands back to its caller. Never an exception."""

    outcome: RunOutcome
    artifact: Artifact  # the valid artifact, or the last one produced
    history: RunHistory
    reason: FailureReason | None = None
    detail: str = ""
    states: list[LoopState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome is RunOutcome.DONE


class LoopController:
    """Orchestrates Executor → Critic → Reviser over bounded iterations.

    The controller keeps no per-run state on itself, so one instance can
    drive several independent runs concurrently (see ``run_many``). The
    executor's admission gate bounds how many of them execute at once.
    """

    def __init__(
        self,
        executor: Executor,
        critic: Critic,
        reviser: Reviser,
        max_iterations: int = 3,
        timeout_seconds: float = 10.0,
        max_service_retries: int = 2,
        stagnation: StagnationCheck = identical_content,
        wire: Wire | None = None,
        history_dir: Path | None = None,
    ) -> None:
        if max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {max_iterations}")
        if max_service_retries < 0:
            raise ValueError("max_service_retries must be >= 0")
        self._executor = executor
        self._critic = critic
        self._reviser = reviser
        self._max_iterations = max_iterations
        self._timeout = timeout_seconds
        self._max_service_retries = max_service_retries
        self._stagnation = stagnation
        self._wire = wire
        self._history_dir = Path(history_dir).expanduser() if history_dir else None

    async def run(
        self,
        seed: Artifact,
        valid: Validator = succeeded,
        max_iterations: int | None = None,
    ) -> RunResult:
        """Run the reflection loop from ``seed``.

        1. Execute the current artifact
        2. Stop with DONE if ``valid(result)``; with FAILED if out of budget
        3. Critique it (retrying malformed replies)
        4. Revise it; stop with FAILED if the revision changed nothing
        5. Loop

        Failures end the run with a FAILED result rather than an exception.
        Only invalid arguments (negative budget, empty seed) raise ValueError.
        """
        budget = self._max_iterations if max_iterations is None else max_iterations
        if budget < 0:
            raise ValueError(f"max_iterations must be >= 0, got {budget}")
        if not seed.content:
            raise ValueError("seed artifact content must not be empty")

        history = RunHistory(run_id=seed.run_id)
        log: HistoryLog | None = None
        states = [LoopState.INIT]
        artifact = seed
        iteration = 0

        logger.info("Run %s: starting (max_iterations=%d)", seed.run_id, budget)
        if self._wire:
            self._wire.send_run_begin(seed.run_id, budget)

        def enter(state: LoopState) -> None:
            states.append(state)
            logger.debug(
                "Run %s: %s (iteration %d)", seed.run_id, state.value, iteration
            )
            if self._wire:
                self._wire.send_state(seed.run_id, state.value, iteration)

        async def record(entry: IterationRecord) -> None:
            history.append(entry)
            if log is not None:
                await log.append(entry)

        async def finish(
            outcome: RunOutcome, reason: FailureReason | None = None, detail: str = ""
        ) -> RunResult:
            enter(LoopState.DONE if outcome is RunOutcome.DONE else LoopState.FAILED)
            if reason is None:
                logger.info("Run %s: done at v%d", seed.run_id, artifact.version)
            else:
                logger.warning(
                    "Run %s: failed at v%d (%s) %s",
                    seed.run_id,
                    artifact.version,
                    reason.value,
                    detail,
                )
                if self._wire:
                    self._wire.send_error(seed.run_id, f"{reason.value}: {detail}")
            if log is not None:
                try:
                    await log.append_outcome(
                        seed.run_id,
                        outcome.value,
                        artifact.version,
                        reason.value if reason else None,
                        detail,
                    )
                except OSError as e:
                    logger.error(
                        "Run %s: could not persist outcome: %s", seed.run_id, e
                    )
            if self._wire:
                self._wire.send_run_end(
                    seed.run_id,
                    outcome.value,
                    artifact.version,
                    reason.value if reason else None,
                )
            return RunResult(
                outcome=outcome,
                artifact=artifact,
                history=history,
                reason=reason,
                detail=detail,
                states=states,
            )

        try:
            log = self._open_log(seed.run_id)
            while True:
                enter(LoopState.EXECUTING)
                execution = await self._executor.execute(artifact, self._timeout)
                if self._wire:
                    self._wire.send_execution(
                        artifact.run_id,
                        artifact.version,
                        execution.success,
                        execution.duration,
                        execution.stderr,
                    )

                if valid(execution):
                    await record(IterationRecord(artifact, execution))
                    return await finish(RunOutcome.DONE)

                if iteration >= budget:
                    await record(IterationRecord(artifact, execution))
                    return await finish(
                        RunOutcome.FAILED,
                        FailureReason.BUDGET_EXHAUSTED,
                        f"no valid artifact after {budget} revisions",
                    )

                enter(LoopState.CRITIQUING)
                critique = await self._call_stage(
                    "critic", artifact.run_id, self._critic.critique, artifact, execution
                )
                await record(IterationRecord(artifact, execution, critique))
                if self._wire:
                    self._wire.send_critique(
                        artifact.run_id, artifact.version, critique.to_list()
                    )

                enter(LoopState.REVISING)
                revised = await self._call_stage(
                    "reviser", artifact.run_id, self._reviser.revise, artifact, critique
                )
                if revised is artifact or history.is_stagnant(
                    revised, self._stagnation
                ):
                    return await finish(
                        RunOutcome.FAILED,
                        FailureReason.NO_PROGRESS,
                        f"revision of v{artifact.version} made no change",
                    )

                artifact = revised
                iteration += 1
                if self._wire:
                    self._wire.send_revision(artifact.run_id, artifact.version)

        except ExecutionEnvironmentError as e:
            return await finish(
                RunOutcome.FAILED, FailureReason.ENVIRONMENT_ERROR, str(e)
            )
        except ServiceUnavailable as e:
            return await finish(
                RunOutcome.FAILED, FailureReason.SERVICE_UNAVAILABLE, str(e)
            )
        except Exception as e:
            logger.error(
                "Run %s: unexpected failure: %s", seed.run_id, e, exc_info=True
            )
            return await finish(
                RunOutcome.FAILED,
                FailureReason.INTERNAL_ERROR,
                f"{type(e).__name__}: {e}",
            )

    async def run_many(
        self,
        seeds: Sequence[Artifact],
        valid: Validator = succeeded,
        max_iterations: int | None = None,
    ) -> list[RunResult]:
        """Run independent seeds concurrently. Results keep the seeds' order."""
        return list(
            await asyncio.gather(
                *(self.run(seed, valid, max_iterations) for seed in seeds)
            )
        )

    async def _call_stage(
        self,
        stage: str,
        run_id: str,
        fn: Callable[..., Awaitable[T]],
        *args: object,
    ) -> T:
        """Call a critic/reviser stage, retrying malformed replies.

        Raises:
            ServiceUnavailable: retries exhausted, or the service call failed.
        """

        def _before_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Run %s: %s attempt %d failed (%s), retrying",
                run_id,
                stage,
                retry_state.attempt_number,
                exc,
            )
            if self._wire:
                self._wire.send_retry(
                    run_id, stage, retry_state.attempt_number, str(exc)
                )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(MalformedResponse),
            stop=stop_after_attempt(self._max_service_retries + 1),
            before_sleep=_before_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await fn(*args)
        except MalformedResponse as e:
            raise ServiceUnavailable(stage, e.reason) from e
        except Exception as e:
            logger.error(
                "Run %s: %s service call failed: %s", run_id, stage, e, exc_info=True
            )
            raise ServiceUnavailable(stage, str(e)) from e
        raise ServiceUnavailable(stage, "no attempt was made")

    def _open_log(self, run_id: str) -> HistoryLog | None:
        if self._history_dir is None:
            return None
        return HistoryLog(path=self._history_dir / f"{run_id}.jsonl")
