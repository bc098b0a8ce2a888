"""Configuration — Pydantic models for reflectloop settings."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """Generation service configuration.

    Model names use litellm's provider-prefix format:
        "anthropic/claude-sonnet-4-5-20250929"
        "openai/gpt-4o"

    API keys are read from env vars automatically by litellm
    (ANTHROPIC_API_KEY, GEMINI_API_KEY, OPENAI_API_KEY).
    """

    model: str = Field(
        default="anthropic/claude-sonnet-4-5-20250929",
        description="Model used to draft and revise artifacts",
    )
    critic_model: str | None = Field(
        default=None,
        description="Model used for critique. Falls back to `model` when unset.",
    )
    temperature: float | None = Field(default=None)
    max_tokens: int | None = Field(default=None)
    request_timeout: float | None = Field(
        default=None, description="Per-request timeout for the model API, in seconds"
    )
    reasoning_effort: str | None = Field(
        default=None,
        description="Reasoning effort level: 'low', 'medium', or 'high'.",
    )

    @property
    def effective_critic_model(self) -> str:
        return self.critic_model or self.model


class LoopConfig(BaseModel):
    """Reflection loop bounds."""

    max_iterations: int = Field(
        default=3, ge=0, description="Revisions allowed after the seed artifact"
    )
    timeout_seconds: float = Field(
        default=10.0, gt=0, description="Wall-clock limit per execution"
    )
    max_output_bytes: int = Field(
        default=50 * 1024, gt=0, description="Cap per captured output stream"
    )
    max_service_retries: int = Field(
        default=2,
        ge=0,
        description="Retries of a single critic/reviser call on malformed output",
    )
    max_concurrent_runs: int = Field(
        default=4, ge=1, description="Simultaneous subprocess executions"
    )
    criteria: str = Field(
        default=(
            "The code must run without errors, be correct for the task, "
            "and be clear and idiomatic."
        ),
        description="Evaluation criteria passed to the critic",
    )


class ReflectConfig(BaseModel):
    """Top-level reflectloop configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    roles_dir: str = Field(
        default="roles", description="Directory for role prompt overrides"
    )
    history_dir: str = Field(
        default="~/.reflectloop/runs", description="Directory for run histories"
    )

    @classmethod
    def load(cls, config_path: str | None = None) -> ReflectConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            REFLECTLOOP_MODEL             - Model for drafting/revision (litellm format)
            REFLECTLOOP_CRITIC_MODEL      - Model for critique
            REFLECTLOOP_REASONING_EFFORT  - Reasoning effort (low/medium/high)
            REFLECTLOOP_MAX_ITERATIONS    - Revision budget
            REFLECTLOOP_TIMEOUT           - Execution timeout in seconds
        """
        # .env values take precedence over stale shell exports
        load_dotenv(find_dotenv(usecwd=True), override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        llm = config_data.get("llm", {})
        loop = config_data.get("loop", {})

        env_model = os.environ.get("REFLECTLOOP_MODEL")
        if env_model:
            llm["model"] = env_model

        env_critic_model = os.environ.get("REFLECTLOOP_CRITIC_MODEL")
        if env_critic_model:
            llm["critic_model"] = env_critic_model

        env_reasoning_effort = os.environ.get("REFLECTLOOP_REASONING_EFFORT")
        if env_reasoning_effort:
            llm["reasoning_effort"] = env_reasoning_effort.lower()

        env_max_iterations = os.environ.get("REFLECTLOOP_MAX_ITERATIONS")
        if env_max_iterations:
            loop["max_iterations"] = int(env_max_iterations)

        env_timeout = os.environ.get("REFLECTLOOP_TIMEOUT")
        if env_timeout:
            loop["timeout_seconds"] = float(env_timeout)

        if llm:
            config_data["llm"] = llm
        if loop:
            config_data["loop"] = loop

        return cls.model_validate(config_data)
