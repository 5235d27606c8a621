# src/drone_conformal_reviewer/analyzer.py
import json
import logging
import os
import shlex
import subprocess
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from .classifier import INTERNAL_ERROR_CODE, PARSE_ERROR_CODE, classify
from .models import AnalysisOutcome, Diagnostic, OutcomeKind, ReviewComment, Severity

logger = logging.getLogger(__name__)

DEFAULT_ANALYZER_COMMAND = "conformal-analyze --json"
DEFAULT_ANALYZER_TIMEOUT = 120
MATLAB_SUFFIX = ".m"

Sibling = Tuple[str, str] # (function name, source text)
# (source, siblings, fixpoint, strict) -> {"diagnostics": [...], "parseError": str | None}
Engine = Callable[[str, Sequence[Sibling], bool, bool], Mapping[str, Any]]


class EngineError(Exception):
    """Raised when the analysis engine cannot produce a result."""


class SubprocessEngine:
    """
    Runs the analysis engine as an external command.

    The request is written to stdin as JSON:
        {"source": ..., "siblings": [[name, text], ...], "fixpoint": bool, "strict": bool}
    and the command must print {"diagnostics": [...], "parseError": ...} on stdout.
    """
    def __init__(self, command: str = DEFAULT_ANALYZER_COMMAND, timeout: int = DEFAULT_ANALYZER_TIMEOUT):
        self.argv = shlex.split(command)
        self.timeout = timeout
        if not self.argv:
            raise ValueError("Analyzer command is empty.")

    def __call__(self, source: str, siblings: Sequence[Sibling], fixpoint: bool, strict: bool) -> Mapping[str, Any]:
        request = json.dumps({
            "source": source,
            "siblings": [list(s) for s in siblings],
            "fixpoint": fixpoint,
            "strict": strict,
        })
        try:
            result = subprocess.run(
                self.argv, input=request, capture_output=True, text=True,
                timeout=self.timeout, check=False,
            )
        except FileNotFoundError as e:
            raise EngineError(f"Analyzer executable not found: {self.argv[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise EngineError(f"Analyzer timed out after {self.timeout}s") from e

        if result.returncode != 0:
            raise EngineError(f"Analyzer exited with status {result.returncode}: {result.stderr.strip()[:500]}")
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise EngineError(f"Analyzer printed invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise EngineError(f"Analyzer result is not an object: {type(data).__name__}")
        return data


def run_engine(
    engine: Engine,
    source: str,
    siblings: Sequence[Sibling],
    fixpoint: bool,
    strict: bool,
) -> AnalysisOutcome:
    """Calls the engine and turns every failure into a tagged outcome."""
    try:
        raw = engine(source, siblings, fixpoint, strict)
        parse_error = raw.get("parseError")
        if parse_error:
            return AnalysisOutcome(kind=OutcomeKind.PARSE_ERROR, parse_error=str(parse_error))
        diagnostics = [Diagnostic.from_engine(d) for d in raw.get("diagnostics") or []]
    except Exception as e: # Any engine failure is confined to this file
        logger.debug("Analysis engine failed", exc_info=True)
        return AnalysisOutcome(kind=OutcomeKind.CRASH, error=str(e))
    return AnalysisOutcome(kind=OutcomeKind.OK, diagnostics=diagnostics)


def analyze_file(
    file_path: str,
    content: str,
    siblings: Sequence[Sibling],
    engine: Engine,
    strict: bool = False,
    fixpoint: bool = False,
) -> List[ReviewComment]:
    """
    Analyzes a single MATLAB file and returns its visible review comments.

    A crash yields one internal-error warning at line 1 and a parse error
    yields one syntax-error error at line 1, so a bad file never stops the
    rest of the run.
    """
    outcome = run_engine(engine, content, siblings, fixpoint, strict)

    if outcome.kind == OutcomeKind.CRASH:
        logger.warning(f"Analysis crashed on {file_path}: {outcome.error}")
        return [ReviewComment(
            path=file_path,
            line=1,
            code=INTERNAL_ERROR_CODE,
            body="Conformal: internal analysis error on this file.",
            severity=Severity.WARNING,
        )]

    if outcome.kind == OutcomeKind.PARSE_ERROR:
        logger.info(f"Syntax error in {file_path}: {outcome.parse_error}")
        return [ReviewComment(
            path=file_path,
            line=1,
            code=PARSE_ERROR_CODE,
            body=f"Conformal: syntax error: {outcome.parse_error}",
            severity=Severity.ERROR,
        )]

    comments: List[ReviewComment] = []
    for diagnostic in outcome.diagnostics:
        classification = classify(diagnostic.code, strict)
        if not classification.visible:
            continue
        comments.append(ReviewComment(
            path=file_path,
            line=diagnostic.line,
            code=diagnostic.code,
            body=diagnostic.message,
            severity=classification.severity,
        ))
    logger.debug(f"{file_path}: {len(outcome.diagnostics)} diagnostics, {len(comments)} visible.")
    return comments


def read_source(full_path: str) -> Optional[str]:
    """Reads a file for analysis; None if it is unreadable or binary."""
    try:
        with open(full_path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read {full_path}, skipping: {e}")
        return None

    if "\0" in content:
        logger.info(f"Skipping binary file: {full_path}")
        return None
    return content


def read_siblings(file_path: str, workspace: str) -> List[Sibling]:
    """
    Reads the other .m files in the same directory, for cross-file analysis.
    Returns (name without .m, content) pairs, excluding the file itself.
    """
    full_path = os.path.join(workspace, file_path)
    directory = os.path.dirname(full_path)
    base_name = os.path.basename(full_path)
    siblings: List[Sibling] = []

    try:
        entries = sorted(os.listdir(directory))
    except OSError as e:
        logger.debug(f"Could not list {directory}; no siblings: {e}")
        return siblings

    for entry in entries:
        if entry == base_name or not entry.endswith(MATLAB_SUFFIX):
            continue
        try:
            with open(os.path.join(directory, entry), "r", encoding="utf-8") as f:
                siblings.append((entry[:-len(MATLAB_SUFFIX)], f.read()))
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable sibling {entry}: {e}")

    return siblings
