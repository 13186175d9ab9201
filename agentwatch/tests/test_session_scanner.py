import json
import os
import tempfile
import unittest
from pathlib import Path

from agentwatch.models import SessionFileInfo
from agentwatch.parsers.sessions import (
    SessionParseLimits,
    TokenPricing,
    calculate_cost,
    parse_session_summary,
    scan_session_files,
    session_id_from_filename,
)


def _user(text, timestamp="2026-02-16T10:00:00Z"):
    return {"type": "user", "timestamp": timestamp, "message": {"role": "user", "content": text}}


def _assistant(text="ok", timestamp="2026-02-16T10:00:05Z", usage=None):
    message = {"role": "assistant", "content": [{"type": "text", "text": text}]}
    if usage is not None:
        message["usage"] = usage
    return {"type": "assistant", "timestamp": timestamp, "message": message}


class ScanSessionFilesTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)

    def _touch(self, name: str, content: str = "{}\n", mtime: float | None = None) -> Path:
        path = self.root / name
        path.write_text(content, encoding="utf-8")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    def test_missing_directory_yields_empty_list(self) -> None:
        self.assertEqual(scan_session_files(self.root / "does-not-exist"), [])

    def test_skips_empty_and_foreign_files(self) -> None:
        self._touch("keep.jsonl")
        self._touch("empty.jsonl", content="")
        self._touch("notes.txt")
        (self.root / "nested.jsonl").mkdir()

        files = scan_session_files(self.root)

        self.assertEqual([f.sessionId for f in files], ["keep"])
        self.assertGreater(files[0].size, 0)

    def test_orders_by_mtime_descending_then_session_id(self) -> None:
        self._touch("old.jsonl", mtime=1_700_000_000)
        self._touch("new.jsonl", mtime=1_700_000_300)
        self._touch("b-tie.jsonl", mtime=1_700_000_100)
        self._touch("a-tie.jsonl", mtime=1_700_000_100)

        files = scan_session_files(self.root)

        self.assertEqual([f.sessionId for f in files], ["new", "a-tie", "b-tie", "old"])

    def test_session_id_from_filename(self) -> None:
        self.assertEqual(session_id_from_filename("abc-123.jsonl"), "abc-123")
        self.assertIsNone(session_id_from_filename("abc.json"))
        self.assertIsNone(session_id_from_filename(".jsonl"))


class ParseSessionSummaryTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)
        self.pricing = TokenPricing()

    def _write(self, lines: list, name: str = "session-1.jsonl") -> SessionFileInfo:
        path = self.root / name
        rendered = [line if isinstance(line, str) else json.dumps(line) for line in lines]
        path.write_text("\n".join(rendered) + "\n", encoding="utf-8")
        stat = path.stat()
        return SessionFileInfo(sessionId=path.stem, path=str(path), size=stat.st_size, mtime=stat.st_mtime)

    def test_garbage_lines_are_skipped_but_do_not_stop_counting(self) -> None:
        info = self._write(
            [
                _user("Hello"),
                "not json at all",
                '{"type": "assistant", "truncated',
                _assistant("Hi"),
            ]
        )

        summary = parse_session_summary(info, "/work/project", pricing=self.pricing)

        self.assertEqual(summary.sessionId, "session-1")
        self.assertEqual(summary.projectPath, "/work/project")
        self.assertEqual(summary.messageCount, 2)
        self.assertEqual(summary.firstMessage, "Hello")
        self.assertEqual(summary.origin, "user")
        self.assertEqual(summary.sizeBytes, info.size)

    def test_non_message_records_are_not_counted(self) -> None:
        info = self._write(
            [
                {"type": "summary", "summary": "mentions \"type\": \"user\" in text"},
                _user("question"),
                {"type": "system", "timestamp": "2026-02-16T10:00:01Z"},
            ]
        )

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.messageCount, 1)

    def test_cost_uses_per_million_pricing(self) -> None:
        million = 1_000_000
        info = self._write(
            [
                _user("price check"),
                {
                    "type": "assistant",
                    "timestamp": "2026-02-16T10:00:05Z",
                    "usage": {
                        "input_tokens": million,
                        "output_tokens": million,
                        "cache_read_input_tokens": million,
                        "cache_creation_input_tokens": million,
                    },
                },
            ]
        )

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.inputTokens, million)
        self.assertEqual(summary.outputTokens, million)
        self.assertEqual(summary.cacheReadTokens, million)
        self.assertEqual(summary.cacheCreationTokens, million)
        self.assertAlmostEqual(summary.costUsd, 22.05, places=6)

    def test_usage_nested_in_message_is_summed_across_lines(self) -> None:
        info = self._write(
            [
                _user("go"),
                _assistant(usage={"input_tokens": 100, "output_tokens": 40}),
                _assistant(usage={"input_tokens": 50, "output_tokens": 10, "cache_read_input_tokens": 7}),
            ]
        )

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.inputTokens, 150)
        self.assertEqual(summary.outputTokens, 50)
        self.assertEqual(summary.cacheReadTokens, 7)
        self.assertAlmostEqual(
            summary.costUsd,
            calculate_cost(150, 50, 7, 0, self.pricing),
        )

    def test_first_message_takes_text_parts_only_and_truncates(self) -> None:
        content = [
            {"type": "tool_result", "content": "ignored"},
            {"type": "text", "text": "  " + "x" * 250},
        ]
        info = self._write([_user(content)])

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.firstMessage, "x" * 200)

    def test_first_message_beyond_scan_window_is_empty(self) -> None:
        limits = SessionParseLimits(first_message_scan_lines=2)
        info = self._write(
            [
                {"type": "system", "timestamp": "2026-02-16T10:00:00Z"},
                _assistant("preamble"),
                _user("too late"),
            ]
        )

        summary = parse_session_summary(info, "/p", limits=limits, pricing=self.pricing)

        self.assertEqual(summary.firstMessage, "")
        self.assertEqual(summary.messageCount, 2)

    def test_duration_spans_first_and_last_timestamps(self) -> None:
        info = self._write(
            [
                _user("start", timestamp="2026-02-16T10:00:00Z"),
                _assistant(timestamp="2026-02-16T10:02:00Z"),
                _assistant(timestamp="2026-02-16T10:05:00Z"),
            ]
        )

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.durationSeconds, 300)

    def test_out_of_order_timestamps_use_extremes(self) -> None:
        info = self._write(
            [
                _user("start", timestamp="2026-02-16T10:03:00Z"),
                _assistant(timestamp="2026-02-16T10:00:00Z"),
                _assistant(timestamp="2026-02-16T10:01:00Z"),
            ]
        )

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.durationSeconds, 180)

    def test_long_transcript_uses_head_and_tail_windows(self) -> None:
        limits = SessionParseLimits(oldest_timestamp_scan_lines=2, last_timestamp_scan_lines=2)
        lines = [_user("start", timestamp="2026-02-16T10:00:00Z")]
        lines += [{"type": "progress"} for _ in range(10)]
        lines.append(_assistant(timestamp="2026-02-16T11:00:00Z"))
        info = self._write(lines)

        summary = parse_session_summary(info, "/p", limits=limits, pricing=self.pricing)

        self.assertEqual(summary.durationSeconds, 3600)

    def test_no_timestamps_means_zero_duration(self) -> None:
        info = self._write([{"type": "user", "message": {"content": "hi"}}])

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.durationSeconds, 0)
        self.assertEqual(summary.firstMessage, "hi")

    def test_timestamps_come_from_file_mtime(self) -> None:
        info = self._write([_user("hello")])
        os.utime(info.path, (1_700_000_000, 1_700_000_000))
        info = info.model_copy(update={"mtime": 1_700_000_000.0})

        summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.modifiedAt, "2023-11-14T22:13:20.000Z")
        self.assertEqual(summary.createdAt, summary.modifiedAt)

    def test_unpriceable_usage_line_is_skipped(self) -> None:
        info = self._write(
            [
                _user("go"),
                _assistant(usage={"input_tokens": 100, "output_tokens": 40}),
                {"type": "assistant", "usage": {"input_tokens": 10**400}},
                _assistant("after", timestamp="2026-02-16T10:00:09Z", usage={"input_tokens": 5}),
            ]
        )

        with self.assertLogs("agentwatch.sessions", level="WARNING") as logs:
            summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertIn("line 3", logs.output[0])
        self.assertEqual(summary.messageCount, 4)
        self.assertEqual(summary.inputTokens, 105)
        self.assertEqual(summary.outputTokens, 40)
        self.assertAlmostEqual(summary.costUsd, calculate_cost(105, 40, 0, 0, self.pricing), places=9)
        self.assertEqual(summary.durationSeconds, 9)

    def test_unreadable_file_returns_base_summary(self) -> None:
        info = SessionFileInfo(
            sessionId="gone",
            path=str(self.root / "gone.jsonl"),
            size=10,
            mtime=1_700_000_000.0,
        )

        with self.assertLogs("agentwatch.sessions", level="WARNING"):
            summary = parse_session_summary(info, "/p", pricing=self.pricing)

        self.assertEqual(summary.sessionId, "gone")
        self.assertEqual(summary.messageCount, 0)
        self.assertEqual(summary.firstMessage, "")


if __name__ == "__main__":
    unittest.main()
