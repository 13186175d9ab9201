"""Output parser registry keyed by agent identifier."""
from __future__ import annotations

import logging

from agentwatch.parsers.platforms.base import AgentOutputParser
from agentwatch.parsers.platforms.claude_code.parser import ClaudeOutputParser
from agentwatch.parsers.platforms.codex.parser import CodexOutputParser
from agentwatch.parsers.platforms.opencode.parser import OpenCodeOutputParser

logger = logging.getLogger("agentwatch.parsers")

_registry: dict[str, AgentOutputParser] = {}
_initialized = False


def register_output_parser(parser: AgentOutputParser) -> None:
    if parser.agent_id in _registry:
        logger.debug(f"Replacing output parser for {parser.agent_id}")
    _registry[parser.agent_id] = parser


def get_output_parser(agent_id: str) -> AgentOutputParser | None:
    ensure_parsers_initialized()
    return _registry.get(agent_id)


def has_output_parser(agent_id: str) -> bool:
    ensure_parsers_initialized()
    return agent_id in _registry


def get_all_output_parsers() -> list[AgentOutputParser]:
    ensure_parsers_initialized()
    return list(_registry.values())


def clear_parser_registry() -> None:
    global _initialized
    _registry.clear()
    _initialized = False


def initialize_output_parsers() -> None:
    """Register every built-in parser, replacing any previous registrations."""
    global _initialized
    _registry.clear()
    register_output_parser(ClaudeOutputParser())
    register_output_parser(OpenCodeOutputParser())
    register_output_parser(CodexOutputParser())
    _initialized = True


def ensure_parsers_initialized() -> None:
    if not _initialized:
        initialize_output_parsers()
