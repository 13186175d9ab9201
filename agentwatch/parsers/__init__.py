"""Transcript and agent-output parsers."""
