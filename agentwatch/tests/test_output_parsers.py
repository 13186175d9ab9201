import json
import unittest

from agentwatch.parsers.platforms import (
    ClaudeOutputParser,
    CodexOutputParser,
    OpenCodeOutputParser,
    clear_parser_registry,
    get_all_output_parsers,
    get_output_parser,
    has_output_parser,
    initialize_output_parsers,
    register_output_parser,
)


class ClaudeOutputParserTests(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = ClaudeOutputParser()

    def test_blank_lines_produce_no_event(self) -> None:
        self.assertIsNone(self.parser.parse_json_line(""))
        self.assertIsNone(self.parser.parse_json_line("   "))
        self.assertIsNone(self.parser.parse_json_line("\n"))

    def test_init_message_carries_session_and_slash_commands(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps(
                {
                    "type": "system",
                    "subtype": "init",
                    "session_id": "sess-abc123",
                    "slash_commands": ["/help", "/compact", "/clear"],
                }
            )
        )
        assert event is not None
        self.assertEqual(event.type, "init")
        self.assertEqual(self.parser.extract_session_id(event), "sess-abc123")
        self.assertEqual(self.parser.extract_slash_commands(event), ["/help", "/compact", "/clear"])

    def test_result_message_aggregates_model_usage(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps(
                {
                    "type": "result",
                    "result": "Here is the answer to your question.",
                    "session_id": "sess-abc123",
                    "modelUsage": {
                        "claude-sonnet": {
                            "inputTokens": 600,
                            "outputTokens": 300,
                            "cacheReadInputTokens": 20,
                            "cacheCreationInputTokens": 10,
                            "contextWindow": 200000,
                        },
                        "claude-haiku": {"inputTokens": 400, "outputTokens": 200, "contextWindow": 100000},
                    },
                    "total_cost_usd": 0.05,
                }
            )
        )
        assert event is not None
        self.assertEqual(event.type, "result")
        self.assertTrue(self.parser.is_result_message(event))
        self.assertEqual(event.text, "Here is the answer to your question.")

        usage = self.parser.extract_usage(event)
        assert usage is not None
        self.assertEqual(usage.inputTokens, 1000)
        self.assertEqual(usage.outputTokens, 500)
        self.assertEqual(usage.cacheReadTokens, 20)
        self.assertEqual(usage.cacheCreationTokens, 10)
        self.assertEqual(usage.contextWindow, 200000)
        self.assertAlmostEqual(usage.costUsd, 0.05)

    def test_assistant_content_blocks_join_text_parts_only(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps(
                {
                    "type": "assistant",
                    "session_id": "sess-abc123",
                    "message": {
                        "role": "assistant",
                        "content": [
                            {"type": "text", "text": "First part. "},
                            {"type": "tool_use", "name": "Read"},
                            {"type": "text", "text": "Second part."},
                        ],
                    },
                }
            )
        )
        assert event is not None
        self.assertEqual(event.type, "text")
        self.assertTrue(event.isPartial)
        self.assertEqual(event.text, "First part. Second part.")
        self.assertFalse(self.parser.is_result_message(event))

    def test_usage_only_message_keeps_usage(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps({"usage": {"input_tokens": 500, "output_tokens": 200}, "total_cost_usd": 0.02})
        )
        assert event is not None
        self.assertEqual(event.type, "system")
        usage = self.parser.extract_usage(event)
        assert usage is not None
        self.assertEqual(usage.inputTokens, 500)
        self.assertEqual(usage.outputTokens, 200)
        self.assertAlmostEqual(usage.costUsd, 0.02)

    def test_invalid_json_degrades_to_text_without_raw(self) -> None:
        event = self.parser.parse_json_line("not valid json")
        assert event is not None
        self.assertEqual(event.type, "text")
        self.assertEqual(event.text, "not valid json")
        self.assertIsNone(event.raw)

    def test_missing_type_maps_to_system(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"foo": "bar"}))
        assert event is not None
        self.assertEqual(event.type, "system")
        self.assertIsNone(self.parser.extract_session_id(event))
        self.assertIsNone(self.parser.extract_usage(event))
        self.assertIsNone(self.parser.extract_slash_commands(event))

    def test_assistant_without_message_yields_empty_text(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "assistant"}))
        assert event is not None
        self.assertEqual(event.type, "text")
        self.assertEqual(event.text, "")

    def test_raw_payload_is_preserved(self) -> None:
        original = {"type": "result", "result": "done", "session_id": "s-1", "extra": {"nested": True}}
        event = self.parser.parse_json_line(json.dumps(original))
        assert event is not None
        self.assertEqual(event.raw, original)

    def test_result_without_usage_fields_reports_none(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "result", "result": "test"}))
        assert event is not None
        self.assertIsNone(self.parser.extract_usage(event))


class OpenCodeOutputParserTests(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = OpenCodeOutputParser()

    def test_step_start_is_init(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "step_start", "sessionID": "oc-1"}))
        assert event is not None
        self.assertEqual(event.type, "init")
        self.assertEqual(self.parser.extract_session_id(event), "oc-1")

    def test_text_without_part_defaults_to_empty_string(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "text", "sessionID": "oc-1"}))
        assert event is not None
        self.assertEqual(event.type, "text")
        self.assertEqual(event.text, "")
        self.assertTrue(event.isPartial)

    def test_tool_use_exposes_name_and_state(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps({"type": "tool_use", "tool": {"name": "bash", "state": {"status": "running"}}})
        )
        assert event is not None
        self.assertEqual(event.type, "tool_use")
        self.assertEqual(event.toolName, "bash")
        self.assertEqual(event.toolState, {"status": "running"})

    def test_step_finish_reports_token_usage(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps(
                {
                    "type": "step_finish",
                    "sessionID": "oc-1",
                    "result": "All done",
                    "part": {"tokens": {"input": 120, "output": 45}},
                }
            )
        )
        assert event is not None
        self.assertTrue(self.parser.is_result_message(event))
        usage = self.parser.extract_usage(event)
        assert usage is not None
        self.assertEqual(usage.inputTokens, 120)
        self.assertEqual(usage.outputTokens, 45)

    def test_step_finish_with_zero_tokens_is_not_none(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps({"type": "step_finish", "part": {"tokens": {"input": 0, "output": 0}}})
        )
        assert event is not None
        usage = self.parser.extract_usage(event)
        assert usage is not None
        self.assertEqual(usage.inputTokens, 0)

    def test_error_payload(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "error", "error": "rate limited"}))
        assert event is not None
        self.assertEqual(event.type, "error")
        self.assertEqual(event.text, "rate limited")


class CodexOutputParserTests(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = CodexOutputParser(
            pricing={
                "INPUT_PER_MILLION": 1.1,
                "CACHED_INPUT_PER_MILLION": 0.275,
                "OUTPUT_PER_MILLION": 4.4,
                "CONTEXT_WINDOW": 200000,
            }
        )

    def test_thread_started_establishes_session(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "thread.started", "thread_id": "th-9"}))
        assert event is not None
        self.assertEqual(event.type, "init")
        self.assertEqual(self.parser.extract_session_id(event), "th-9")

    def test_reasoning_is_partial_and_agent_message_is_final(self) -> None:
        reasoning = self.parser.parse_json_line(
            json.dumps({"type": "item.completed", "item": {"type": "reasoning", "text": "thinking"}})
        )
        message = self.parser.parse_json_line(
            json.dumps({"type": "item.completed", "item": {"type": "agent_message", "text": "answer"}})
        )
        assert reasoning is not None and message is not None
        self.assertTrue(reasoning.isPartial)
        self.assertFalse(message.isPartial)
        self.assertEqual(message.text, "answer")

    def test_tool_result_decodes_byte_output(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps({"type": "item.completed", "item": {"type": "tool_result", "output": [104, 105]}})
        )
        assert event is not None
        self.assertEqual(event.type, "tool_use")
        self.assertEqual(event.toolState["output"], "hi")

    def test_turn_completed_bills_reasoning_as_output(self) -> None:
        event = self.parser.parse_json_line(
            json.dumps(
                {
                    "type": "turn.completed",
                    "usage": {
                        "input_tokens": 1000,
                        "cached_input_tokens": 200,
                        "output_tokens": 300,
                        "reasoning_output_tokens": 100,
                    },
                }
            )
        )
        assert event is not None
        self.assertTrue(self.parser.is_result_message(event))
        usage = self.parser.extract_usage(event)
        assert usage is not None
        self.assertEqual(usage.inputTokens, 1000)
        self.assertEqual(usage.outputTokens, 400)
        self.assertEqual(usage.cacheReadTokens, 200)
        self.assertEqual(usage.reasoningTokens, 100)
        self.assertAlmostEqual(usage.costUsd, 0.002695)

    def test_slash_commands_are_not_exposed(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "thread.started", "thread_id": "th-9"}))
        assert event is not None
        self.assertIsNone(self.parser.extract_slash_commands(event))

    def test_unknown_type_maps_to_system(self) -> None:
        event = self.parser.parse_json_line(json.dumps({"type": "mystery"}))
        assert event is not None
        self.assertEqual(event.type, "system")


class MalformedNumericFieldTests(unittest.TestCase):
    """Out-of-range or non-numeric counters never make a parser raise."""

    def test_opencode_infinite_token_count(self) -> None:
        event = OpenCodeOutputParser().parse_json_line(
            '{"type":"step_finish","part":{"tokens":{"input":1e400,"output":7}}}'
        )
        assert event is not None
        self.assertEqual(event.type, "result")
        assert event.usage is not None
        self.assertEqual(event.usage.inputTokens, 0)
        self.assertEqual(event.usage.outputTokens, 7)

    def test_claude_infinite_model_usage(self) -> None:
        event = ClaudeOutputParser().parse_json_line(
            '{"type":"result","result":"done","modelUsage":{"m":{"inputTokens":1e400,"outputTokens":3}}}'
        )
        assert event is not None
        self.assertEqual(event.type, "result")
        assert event.usage is not None
        self.assertEqual(event.usage.inputTokens, 0)
        self.assertEqual(event.usage.outputTokens, 3)

    def test_codex_infinite_usage(self) -> None:
        event = CodexOutputParser().parse_json_line(
            '{"type":"turn.completed","usage":{"input_tokens":1e400,"output_tokens":10}}'
        )
        assert event is not None
        self.assertEqual(event.type, "result")
        assert event.usage is not None
        self.assertEqual(event.usage.inputTokens, 0)
        self.assertEqual(event.usage.outputTokens, 10)

    def test_claude_result_with_unparseable_cost_stays_a_result(self) -> None:
        parser = ClaudeOutputParser()
        for cost in ('"n/a"', "1e400", "[1]"):
            event = parser.parse_json_line(f'{{"type":"result","result":"done","total_cost_usd":{cost}}}')
            assert event is not None
            self.assertEqual(event.type, "result")
            self.assertTrue(parser.is_result_message(event))
            self.assertEqual(event.text, "done")
            usage = parser.extract_usage(event)
            assert usage is not None
            self.assertEqual(usage.costUsd, 0.0)


class DetectErrorFromLineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = CodexOutputParser()

    def test_string_error_field(self) -> None:
        self.assertEqual(
            self.parser.detect_error_from_line('{"type":"error","error":"rate limit exceeded"}'),
            "rate limit exceeded",
        )

    def test_object_error_field_is_serialized(self) -> None:
        self.assertEqual(
            self.parser.detect_error_from_line('{"error":{"code":401,"message":"bad key"}}'),
            '{"code":401,"message":"bad key"}',
        )

    def test_lines_without_error_payload(self) -> None:
        self.assertIsNone(self.parser.detect_error_from_line(""))
        self.assertIsNone(self.parser.detect_error_from_line("plain stderr text"))
        self.assertIsNone(self.parser.detect_error_from_line('{"type":"turn.started"}'))
        self.assertIsNone(self.parser.detect_error_from_line('["error"]'))


class ParserRegistryTests(unittest.TestCase):
    def tearDown(self) -> None:
        clear_parser_registry()

    def test_builtin_parsers_are_registered_lazily(self) -> None:
        clear_parser_registry()
        self.assertTrue(has_output_parser("claude-code"))
        self.assertIsInstance(get_output_parser("opencode"), OpenCodeOutputParser)
        self.assertIsInstance(get_output_parser("codex"), CodexOutputParser)
        self.assertEqual(
            sorted(p.agent_id for p in get_all_output_parsers()),
            ["claude-code", "codex", "opencode"],
        )

    def test_unknown_agent_has_no_parser(self) -> None:
        self.assertIsNone(get_output_parser("terminal"))
        self.assertFalse(has_output_parser("terminal"))

    def test_register_replaces_existing_parser(self) -> None:
        initialize_output_parsers()
        replacement = ClaudeOutputParser()
        register_output_parser(replacement)
        self.assertIs(get_output_parser("claude-code"), replacement)


if __name__ == "__main__":
    unittest.main()
