import os
import shlex
import sys
import tempfile
import unittest

from drone_conformal_reviewer.analyzer import (
    EngineError,
    SubprocessEngine,
    analyze_file,
    read_siblings,
    read_source,
    run_engine,
)
from drone_conformal_reviewer.models import OutcomeKind, Severity


def engine_returning(result):
    calls = []

    def engine(source, siblings, fixpoint, strict):
        calls.append((source, list(siblings), fixpoint, strict))
        return result

    engine.calls = calls
    return engine


def crashing_engine(source, siblings, fixpoint, strict):
    raise RuntimeError("stack overflow in shape solver")


def python_command(script: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"


class TestRunEngine(unittest.TestCase):
    def test_ok(self):
        engine = engine_returning({
            "diagnostics": [{"line": 4, "col": 2, "code": "W_DIVISION_BY_ZERO", "message": "x / 0",
                             "relatedLine": None, "relatedCol": None}],
            "parseError": None,
        })
        outcome = run_engine(engine, "x = 1 / 0;", [], fixpoint=True, strict=False)

        self.assertEqual(outcome.kind, OutcomeKind.OK)
        self.assertEqual(outcome.diagnostics[0].line, 4)
        self.assertEqual(outcome.diagnostics[0].column, 2)
        self.assertEqual(engine.calls[0][2:], (True, False))

    def test_parse_error(self):
        outcome = run_engine(engine_returning({"diagnostics": [], "parseError": "unexpected 'end'"}),
                             "end", [], False, False)
        self.assertEqual(outcome.kind, OutcomeKind.PARSE_ERROR)
        self.assertEqual(outcome.parse_error, "unexpected 'end'")

    def test_crash(self):
        outcome = run_engine(crashing_engine, "x = 1;", [], False, False)
        self.assertEqual(outcome.kind, OutcomeKind.CRASH)
        self.assertIn("stack overflow", outcome.error)

    def test_malformed_result_is_a_crash(self):
        outcome = run_engine(engine_returning({"diagnostics": [{"message": "no line"}]}), "", [], False, False)
        self.assertEqual(outcome.kind, OutcomeKind.CRASH)


class TestAnalyzeFile(unittest.TestCase):
    def test_filters_strict_only_codes_by_default(self):
        engine = engine_returning({"diagnostics": [
            {"line": 3, "code": "W_INNER_DIM_MISMATCH", "message": "3x4 * 5x2"},
            {"line": 5, "code": "W_UNKNOWN_FUNCTION", "message": "foo is unknown"},
            {"line": 6, "code": "W_SUSPICIOUS_COMPARISON", "message": "compare"},
        ], "parseError": None})

        comments = analyze_file("src/a.m", "...", [], engine, strict=False)

        self.assertEqual([(c.line, c.code, c.severity) for c in comments], [
            (3, "W_INNER_DIM_MISMATCH", Severity.ERROR),
            (6, "W_SUSPICIOUS_COMPARISON", Severity.WARNING),
        ])
        self.assertEqual(comments[0].body, "3x4 * 5x2")
        self.assertEqual(comments[0].path, "src/a.m")

    def test_strict_mode_keeps_strict_only_codes(self):
        engine = engine_returning({"diagnostics": [
            {"line": 5, "code": "W_UNSUPPORTED_SYNTAX", "message": "unsupported"},
        ], "parseError": None})

        comments = analyze_file("a.m", "...", [], engine, strict=True)

        self.assertEqual(len(comments), 1)
        self.assertEqual(comments[0].severity, Severity.HINT)

    def test_parse_error_becomes_single_error_at_line_one(self):
        engine = engine_returning({"diagnostics": [], "parseError": "unexpected end of input"})

        comments = analyze_file("a.m", "function", [], engine)

        self.assertEqual(len(comments), 1)
        self.assertEqual(comments[0].line, 1)
        self.assertEqual(comments[0].code, "W_PARSE_ERROR")
        self.assertEqual(comments[0].severity, Severity.ERROR)
        self.assertEqual(comments[0].body, "Conformal: syntax error: unexpected end of input")

    def test_crash_becomes_single_warning_at_line_one(self):
        comments = analyze_file("a.m", "x", [], crashing_engine)

        self.assertEqual(len(comments), 1)
        self.assertEqual(comments[0].line, 1)
        self.assertEqual(comments[0].code, "W_INTERNAL_ERROR")
        self.assertEqual(comments[0].severity, Severity.WARNING)
        self.assertEqual(comments[0].body, "Conformal: internal analysis error on this file.")


class TestSubprocessEngine(unittest.TestCase):
    def test_round_trip_over_stdin_stdout(self):
        script = (
            "import json, sys\n"
            "req = json.load(sys.stdin)\n"
            "msg = '%d siblings, strict=%s' % (len(req['siblings']), req['strict'])\n"
            "print(json.dumps({'diagnostics': [{'line': 2, 'col': 1, 'code': 'W_X', 'message': msg}],"
            " 'parseError': None}))\n"
        )
        engine = SubprocessEngine(python_command(script), timeout=30)

        result = engine("x = 1;", [("helper", "function helper()\nend")], False, True)

        self.assertEqual(result["diagnostics"][0]["message"], "1 siblings, strict=True")
        self.assertIsNone(result["parseError"])

    def test_non_zero_exit_raises(self):
        engine = SubprocessEngine(python_command("import sys; sys.exit(3)"), timeout=30)
        with self.assertRaises(EngineError):
            engine("x", [], False, False)

    def test_invalid_json_raises(self):
        engine = SubprocessEngine(python_command("print('not json')"), timeout=30)
        with self.assertRaises(EngineError):
            engine("x", [], False, False)

    def test_missing_executable_raises(self):
        engine = SubprocessEngine("definitely-not-a-conformal-binary --json")
        with self.assertRaises(EngineError):
            engine("x", [], False, False)

    def test_failure_is_contained_by_analyze_file(self):
        engine = SubprocessEngine(python_command("import sys; sys.exit(1)"), timeout=30)
        comments = analyze_file("a.m", "x", [], engine)
        self.assertEqual([c.code for c in comments], ["W_INTERNAL_ERROR"])

    def test_empty_command_rejected(self):
        with self.assertRaises(ValueError):
            SubprocessEngine("   ")


class TestWorkspaceReads(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.workspace = self._tmp.name
        os.makedirs(os.path.join(self.workspace, "src"))
        self._write("src/main.m", "y = helper(1);\n")
        self._write("src/helper.m", "function y = helper(x)\n  y = x;\nend\n")
        self._write("src/util.m", "function util()\nend\n")
        self._write("src/notes.txt", "not matlab")

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, rel, content):
        with open(os.path.join(self.workspace, rel), "w", encoding="utf-8") as f:
            f.write(content)

    def test_read_siblings_excludes_self_and_non_m_files(self):
        siblings = read_siblings("src/main.m", self.workspace)

        self.assertEqual([name for name, _ in siblings], ["helper", "util"])
        self.assertIn("function y = helper(x)", siblings[0][1])

    def test_read_siblings_missing_directory(self):
        self.assertEqual(read_siblings("nowhere/main.m", self.workspace), [])

    def test_read_source(self):
        self.assertEqual(read_source(os.path.join(self.workspace, "src/main.m")), "y = helper(1);\n")

    def test_read_source_binary_and_missing(self):
        self._write("src/blob.m", "abc\0def")
        self.assertIsNone(read_source(os.path.join(self.workspace, "src/blob.m")))
        self.assertIsNone(read_source(os.path.join(self.workspace, "src/missing.m")))


if __name__ == '__main__':
    unittest.main()
