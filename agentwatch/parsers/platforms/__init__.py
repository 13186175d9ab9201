"""Per-agent output parsers and their registry."""

from agentwatch.parsers.platforms.base import AgentOutputParser
from agentwatch.parsers.platforms.claude_code.parser import ClaudeOutputParser
from agentwatch.parsers.platforms.codex.parser import CodexOutputParser
from agentwatch.parsers.platforms.opencode.parser import OpenCodeOutputParser
from agentwatch.parsers.platforms.registry import (
    clear_parser_registry,
    ensure_parsers_initialized,
    get_all_output_parsers,
    get_output_parser,
    has_output_parser,
    initialize_output_parsers,
    register_output_parser,
)

__all__ = [
    "AgentOutputParser",
    "ClaudeOutputParser",
    "CodexOutputParser",
    "OpenCodeOutputParser",
    "clear_parser_registry",
    "ensure_parsers_initialized",
    "get_all_output_parsers",
    "get_output_parser",
    "has_output_parser",
    "initialize_output_parsers",
    "register_output_parser",
]
