"""CLI entry point for reflectloop."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path

import typer

from reflectloop.config import ReflectConfig
from reflectloop.execution.executor import DEFAULT_COMMAND, Executor
from reflectloop.llm.provider import create_provider
from reflectloop.model.artifact import Artifact
from reflectloop.reflect.controller import (
    FailureReason,
    LoopController,
    RunResult,
    stdout_contains,
    succeeded,
)
from reflectloop.reflect.critic import Critic
from reflectloop.reflect.reviser import Drafter, Reviser
from reflectloop.reflect.role import RoleRegistry
from reflectloop.reflect.service import LLMGenerationService
from reflectloop.session.history_log import HistoryLog
from reflectloop.session.wire import EventType, Wire

logger = logging.getLogger(__name__)

EXIT_DONE = 0
EXIT_FAILED = 1
# 2 is taken by click for usage errors
EXIT_ENVIRONMENT = 3

app = typer.Typer(
    name="reflectloop",
    help="Generate, execute, critique and revise an artifact until it passes.",
    no_args_is_help=True,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@dataclass
class ReflectionPipeline:
    """Everything one CLI invocation needs."""

    drafter: Drafter
    controller: LoopController


def _build_pipeline(
    config: ReflectConfig,
    task: str,
    command: list[str],
    suffix: str,
    wire: Wire | None = None,
    stream: bool = False,
) -> ReflectionPipeline:
    """Wire up services, executor and controller from config.

    Each role gets its own provider so a role file can pin its own model.
    With ``stream`` set, model output is echoed as it arrives.
    """
    on_text = _echo_text if stream else None

    roles = RoleRegistry()
    if config.roles_dir:
        roles.discover([os.path.abspath(config.roles_dir)])

    def service_for(role_name: str, default_model: str) -> LLMGenerationService:
        role = roles.require(role_name)
        temperature = role.config.temperature
        if temperature is None:
            temperature = config.llm.temperature
        provider = create_provider(
            model=role.config.model or default_model,
            temperature=temperature,
            max_tokens=config.llm.max_tokens,
            reasoning_effort=config.llm.reasoning_effort,
            request_timeout=config.llm.request_timeout,
        )
        return LLMGenerationService(provider, roles, on_text=on_text)

    criteria = f"Task: {task}\n\n{config.loop.criteria}"

    executor = Executor(
        command=command,
        suffix=suffix,
        max_output_bytes=config.loop.max_output_bytes,
        gate=asyncio.Semaphore(config.loop.max_concurrent_runs),
    )
    controller = LoopController(
        executor=executor,
        critic=Critic(service_for("critic", config.llm.effective_critic_model), criteria),
        reviser=Reviser(service_for("reviser", config.llm.model), criteria),
        max_iterations=config.loop.max_iterations,
        timeout_seconds=config.loop.timeout_seconds,
        max_service_retries=config.loop.max_service_retries,
        wire=wire,
        history_dir=Path(config.history_dir).expanduser(),
    )
    drafter = Drafter(service_for("author", config.llm.model), config.loop.criteria)
    return ReflectionPipeline(drafter=drafter, controller=controller)


@app.command()
def run(
    task: str = typer.Argument(help="What the artifact should accomplish."),
    seed: str | None = typer.Option(
        None,
        "--seed",
        "-s",
        help="Start from this file instead of drafting a first version.",
    ),
    validate: str | None = typer.Option(
        None,
        "--validate",
        "-V",
        help=(
            "Command that runs the artifact; {path} is replaced with the "
            "artifact file (e.g. 'python -m pytest -q {path}'). "
            "Defaults to the current Python interpreter."
        ),
    ),
    expect: str | None = typer.Option(
        None, "--expect", "-e", help="Require this text in the artifact's stdout."
    ),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", "-n", min=0, help="Revision budget."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Execution timeout in seconds."
    ),
    suffix: str = typer.Option(".py", "--suffix", help="Artifact file suffix."),
    output: str | None = typer.Option(
        None, "--output", "-o", help="Write the final artifact here."
    ),
    model: str | None = typer.Option(
        None, "--model", "-m", help="Model for drafting and revision."
    ),
    critic_model: str | None = typer.Option(
        None, "--critic-model", help="Model for critique (defaults to --model)."
    ),
    stream: bool = typer.Option(
        False, "--stream", help="Echo model output as it is generated."
    ),
    history_dir: str | None = typer.Option(
        None, "--history-dir", help="Directory for run history files."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run the reflection loop for TASK."""
    setup_logging(verbose)

    config = ReflectConfig.load(config_file)
    if model:
        config.llm.model = model
    if critic_model:
        config.llm.critic_model = critic_model
    if max_iterations is not None:
        config.loop.max_iterations = max_iterations
    if timeout is not None:
        if timeout <= 0:
            typer.echo("Error: --timeout must be positive", err=True)
            raise typer.Exit(EXIT_FAILED)
        config.loop.timeout_seconds = timeout
    if history_dir:
        config.history_dir = history_dir

    seed_content: str | None = None
    if seed:
        seed_path = os.path.abspath(seed)
        if not os.path.isfile(seed_path):
            typer.echo(f"Error: Seed file not found: {seed_path}", err=True)
            raise typer.Exit(EXIT_FAILED)
        with open(seed_path, encoding="utf-8") as f:
            seed_content = f.read()
        if not seed_content:
            typer.echo(f"Error: Seed file is empty: {seed_path}", err=True)
            raise typer.Exit(EXIT_FAILED)

    command = shlex.split(validate) if validate else list(DEFAULT_COMMAND)

    typer.echo(f"Task: {task}")
    typer.echo(f"Command: {' '.join(command)}")
    typer.echo(f"Model: {config.llm.model}")
    typer.echo(f"Critic model: {config.llm.effective_critic_model}")
    typer.echo(f"Max iterations: {config.loop.max_iterations}")
    typer.echo("---")

    result = asyncio.run(
        _run_reflection(task, seed_content, command, suffix, expect, config, stream)
    )
    if result is None:
        raise typer.Exit(EXIT_FAILED)

    _print_summary(result, config)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(result.artifact.content)
        typer.echo(f"Artifact written to: {output}")

    raise typer.Exit(_exit_code(result))


async def _run_reflection(
    task: str,
    seed_content: str | None,
    command: list[str],
    suffix: str,
    expect: str | None,
    config: ReflectConfig,
    stream: bool = False,
) -> RunResult | None:
    """Draft (if needed) and run the loop, printing wire events as they come."""
    wire = Wire()
    pipeline = _build_pipeline(
        config, task, command, suffix, wire=wire, stream=stream
    )
    consumer_task = asyncio.create_task(_consume_wire(wire))

    try:
        if seed_content is None:
            typer.echo("Drafting first version...")
            try:
                seed = await pipeline.drafter.draft(task)
            except Exception as e:
                logger.error("Drafting failed: %s", e, exc_info=True)
                typer.echo(f"Error: could not draft a first version: {e}", err=True)
                return None
        else:
            seed = Artifact.seed(seed_content)

        valid = stdout_contains(expect) if expect else succeeded
        return await pipeline.controller.run(seed, valid=valid)
    finally:
        wire.close()
        await consumer_task


def _echo_text(text: str) -> None:
    print(text, end="", flush=True)


async def _consume_wire(wire: Wire) -> None:
    queue = wire.subscribe()
    while True:
        event = await queue.get()
        if event is None:
            break

        d = event.data
        if event.type == EventType.STATE:
            state = d.get("state", "?")
            if state == "executing":
                print(f"\n[iteration {d.get('iteration', 0)}] executing", flush=True)
            elif state in ("critiquing", "revising"):
                print(f"  {state}...", flush=True)

        elif event.type == EventType.EXECUTION:
            status = "OK" if d.get("success") else "FAILED"
            print(
                f"  < v{d.get('version')}: {status} ({d.get('duration', 0.0):.2f}s)",
                flush=True,
            )
            stderr = d.get("stderr", "")
            if stderr and not d.get("success"):
                print(f"    {stderr.splitlines()[-1][:100]}", flush=True)

        elif event.type == EventType.CRITIQUE:
            for finding in d.get("findings", []):
                issue = finding.get("issue", "").split("\n")[0][:100]
                print(f"    [{finding.get('severity')}] {issue}", flush=True)

        elif event.type == EventType.REVISION:
            print(f"  > revised to v{d.get('version')}", flush=True)

        elif event.type == EventType.RETRY:
            print(
                f"  [retry] {d.get('stage')} attempt {d.get('attempt')} failed: "
                f"{d.get('error', '')[:100]}",
                flush=True,
            )

        elif event.type == EventType.ERROR:
            print(f"\nERROR: {d.get('error', 'Unknown error')}", flush=True)

    wire.unsubscribe(queue)


def _print_summary(result: RunResult, config: ReflectConfig) -> None:
    artifact = result.artifact
    print(f"\n---\nRun {artifact.run_id}: {result.outcome.value}", flush=True)
    if result.reason is not None:
        print(f"Reason: {result.reason.value} ({result.detail})")
    print(f"Final version: v{artifact.version}")
    print(f"Iterations recorded: {len(result.history)}")
    history_path = Path(config.history_dir).expanduser() / f"{artifact.run_id}.jsonl"
    print(f"History saved to: {history_path}")


def _exit_code(result: RunResult) -> int:
    if result.ok:
        return EXIT_DONE
    if result.reason is FailureReason.ENVIRONMENT_ERROR:
        return EXIT_ENVIRONMENT
    return EXIT_FAILED


@app.command()
def show(
    history: str = typer.Argument(help="Path to a run history (.jsonl)."),
    content: bool = typer.Option(
        False, "--content", help="Print each version's full content."
    ),
) -> None:
    """Print a persisted run history."""
    path = Path(history)
    if not path.is_file():
        typer.echo(f"Error: History not found: {path}", err=True)
        raise typer.Exit(EXIT_FAILED)

    log = asyncio.run(HistoryLog.restore(path))
    for record in log.records:
        execution = record.execution
        status = "OK" if execution.success else "FAILED"
        typer.echo(f"v{record.artifact.version}: {status} ({execution.duration:.2f}s)")
        if content:
            typer.echo(record.artifact.content)
        if not execution.success and execution.stderr:
            typer.echo(f"  stderr: {execution.stderr.splitlines()[-1][:100]}")
        if record.critique is not None:
            for finding in record.critique:
                issue = finding.issue.split("\n")[0][:100]
                typer.echo(f"  [{finding.severity.value}] {issue}")

    if log.outcome:
        reason = log.outcome.get("reason")
        suffix = f" ({reason})" if reason else ""
        typer.echo(f"Outcome: {log.outcome.get('outcome')}{suffix}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
