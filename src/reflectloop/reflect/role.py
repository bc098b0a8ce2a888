"""Role definitions — the system prompt and model for each generation role.

Built-in roles cover drafting, critique and revision. Any of them can be
overridden by a markdown file with YAML frontmatter:

    ---
    name: critic
    description: Strict reviewer for numerical code
    model: openai/gpt-4o
    temperature: 0.0
    ---

    You are a meticulous reviewer...
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Literal

import yaml

from reflectloop.reflect import prompts

logger = logging.getLogger(__name__)

RoleName = Literal["author", "critic", "reviser"]

ROLE_NAMES: tuple[str, ...] = ("author", "critic", "reviser")


@dataclass
class RoleConfig:
    """Configuration for a role, typically from YAML frontmatter."""

    name: str
    description: str = ""
    model: str | None = None  # Override model for this role
    temperature: float | None = None


@dataclass
class Role:
    """A configured generation role."""

    config: RoleConfig
    system_prompt: str = ""

    @property
    def name(self) -> str:
        return self.config.name

    @classmethod
    def from_markdown(cls, path: str) -> Role:
        """Load a role definition from a markdown file with YAML frontmatter."""
        with open(path, "r") as f:
            content = f.read()

        config_dict, prompt = _parse_frontmatter(content)
        config = RoleConfig(**config_dict)
        return cls(config=config, system_prompt=prompt.strip())


def _parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter from markdown content.

    Returns (config_dict, body_text).
    """
    pattern = re.compile(r"^---\s*\n(.*?)\n---\s*\n(.*)", re.DOTALL)
    match = pattern.match(content)

    if not match:
        return {}, content

    frontmatter = match.group(1)
    body = match.group(2)

    try:
        config = yaml.safe_load(frontmatter) or {}
    except yaml.YAMLError:
        logger.warning("Ignoring unparseable role frontmatter")
        config = {}

    return config, body


def discover_roles(search_dirs: list[str]) -> list[Role]:
    """Discover role definitions from markdown files in directories.

    Only files whose frontmatter names one of the known roles are returned.
    """
    roles = []
    for dir_path in search_dirs:
        if not os.path.isdir(dir_path):
            continue
        for fname in sorted(os.listdir(dir_path)):
            if not fname.endswith(".md"):
                continue
            full_path = os.path.join(dir_path, fname)
            try:
                role = Role.from_markdown(full_path)
            except (OSError, TypeError) as e:
                logger.warning("Skipping role file %s: %s", full_path, e)
                continue
            if role.config.name in ROLE_NAMES and role.system_prompt:
                roles.append(role)
    return roles


def default_roles() -> list[Role]:
    """Built-in roles."""
    return [
        Role(
            RoleConfig(name="author", description="Drafts the seed artifact"),
            prompts.AUTHOR_SYSTEM_PROMPT,
        ),
        Role(
            RoleConfig(
                name="critic",
                description="Reviews artifacts and execution feedback",
                temperature=0.0,
            ),
            prompts.CRITIC_SYSTEM_PROMPT,
        ),
        Role(
            RoleConfig(name="reviser", description="Rewrites artifacts from findings"),
            prompts.REVISER_SYSTEM_PROMPT,
        ),
    ]


class RoleRegistry:
    """Registry of generation roles, pre-populated with the built-ins."""

    def __init__(self, roles: list[Role] | None = None) -> None:
        self._roles: dict[str, Role] = {}
        for role in roles if roles is not None else default_roles():
            self.register(role)

    def register(self, role: Role) -> None:
        self._roles[role.name] = role

    def require(self, name: str) -> Role:
        role = self._roles.get(name)
        if role is None:
            raise KeyError(f"Unknown role: {name}")
        return role

    def discover(self, search_dirs: list[str]) -> None:
        """Override roles from markdown files."""
        for role in discover_roles(search_dirs):
            self.register(role)
            logger.info("Loaded role override: %s", role.name)
