# ============================================================================
# RESULT MARKER TESTS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Tests - RESULT: marker parsing from child stdout
# PURPOSE: Verify single-line, multi-line, broken and absent markers
# CREATED: 19 OCT 2026
# ============================================================================
"""
Result Marker Tests

Run with:
    pytest tests/test_result_marker.py -v
"""

from worker import ExecutionResult, ResultMarkerParser


def _parse(*chunks: str):
    parser = ResultMarkerParser()
    for chunk in chunks:
        parser.feed(chunk)
    return parser.finish()


class TestResultMarkerParser:

    def test_single_line(self):
        result = _parse('working...\nRESULT: {"ok": true, "checked": 3}\ndone\n')
        assert result == {"ok": True, "checked": 3}

    def test_multi_line_ends_on_closing_brace(self):
        stdout = 'RESULT: {\n  "status": "healthy",\n  "nested": {\n    "a": 1\n  }\n}\ntrailing\n'
        assert _parse(stdout) == {"status": "healthy", "nested": {"a": 1}}

    def test_split_across_chunks(self):
        assert _parse("RESU", 'LT: {"a"', ': 1}\n') == {"a": 1}

    def test_brace_inside_string(self):
        assert _parse('RESULT: {\n"msg": "a } b"\n}\n') == {"msg": "a } b"}

    def test_unterminated_last_line(self):
        assert _parse('RESULT: {"a": 1}') == {"a": 1}

    def test_garbage_yields_none(self):
        assert _parse("RESULT: not json at all\nmore output\n") is None

    def test_unclosed_object_yields_none(self):
        assert _parse('RESULT: {\n"a": 1,\n') is None

    def test_non_object_ignored(self):
        assert _parse("RESULT: [1, 2, 3]\n") is None

    def test_absent_marker(self):
        assert _parse("line one\nline two\n") is None

    def test_custom_prefix(self):
        parser = ResultMarkerParser(prefix="OUT>")
        parser.feed('OUT> {"x": 2}\n')
        assert parser.finish() == {"x": 2}


class TestExecutionResult:

    def test_success_is_exit_zero(self):
        assert ExecutionResult(task_name="t", exit_code=0).success
        assert not ExecutionResult(task_name="t", exit_code=2).success

    def test_failure_message_truncates_stderr(self):
        result = ExecutionResult(task_name="t", exit_code=1, stderr="x" * 50 + "tail")
        assert result.failure_message(excerpt_bytes=4) == "Script exited with code 1: tail"
