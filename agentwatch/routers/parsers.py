"""Agent output normalization API."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from agentwatch.models import AgentEvent, EventUsage
from agentwatch.parsers.platforms.registry import get_all_output_parsers, get_output_parser

parsers_router = APIRouter(prefix="/api/parsers", tags=["parsers"])


class ParseLinesPayload(BaseModel):
    lines: list[str] = Field(default_factory=list)


class ParsedLine(BaseModel):
    event: AgentEvent
    isResult: bool = False
    sessionId: Optional[str] = None
    usage: Optional[EventUsage] = None
    slashCommands: Optional[list[str]] = None


@parsers_router.get("")
async def list_parsers():
    return {"agents": sorted(parser.agent_id for parser in get_all_output_parsers())}


@parsers_router.post("/{agent_id}/parse", response_model=list[ParsedLine])
async def parse_lines(agent_id: str, payload: ParseLinesPayload):
    """Normalize raw output lines; blank lines produce no entry."""
    parser = get_output_parser(agent_id)
    if parser is None:
        raise HTTPException(status_code=404, detail=f"No output parser for agent '{agent_id}'")

    parsed: list[ParsedLine] = []
    for line in payload.lines:
        event = parser.parse_json_line(line)
        if event is None:
            continue
        parsed.append(
            ParsedLine(
                event=event,
                isResult=parser.is_result_message(event),
                sessionId=parser.extract_session_id(event),
                usage=parser.extract_usage(event),
                slashCommands=parser.extract_slash_commands(event),
            )
        )
    return parsed
