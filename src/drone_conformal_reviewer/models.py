# src/drone_conformal_reviewer/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

# Maps file path -> new-side line numbers touched by the diff
LineIndex = Dict[str, Set[int]]


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    HINT = "hint"


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    RENAMED = "renamed"
    REMOVED = "removed"


class OutcomeKind(str, Enum):
    OK = "ok"
    PARSE_ERROR = "parse_error"
    CRASH = "crash"


@dataclass
class ChangedFile:
    """
    A single file from the pull request's changed-file listing.
    Removed files and files without a patch (binary, too large, pure renames)
    never get a line index.
    """
    path: str
    status: FileStatus = FileStatus.MODIFIED
    patch: Optional[str] = None
    previous_path: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChangedFile":
        """Builds a ChangedFile from a GitHub `pulls/{n}/files` entry."""
        raw_status = str(data.get("status", "modified")).lower()
        try:
            status = FileStatus(raw_status)
        except ValueError:
            # GitHub also reports "copied" and "changed"; both keep new-side content
            status = FileStatus.MODIFIED
        return cls(
            path=data["filename"],
            status=status,
            patch=data.get("patch") or None,
            previous_path=data.get("previous_filename"),
        )


@dataclass(frozen=True)
class Diagnostic:
    """A diagnostic as reported by the analysis engine (1-based line)."""
    line: int
    code: str
    message: str
    column: int = 0
    related_line: Optional[int] = None
    related_column: Optional[int] = None

    @classmethod
    def from_engine(cls, data: Dict[str, Any]) -> "Diagnostic":
        return cls(
            line=int(data["line"]),
            code=str(data["code"]),
            message=str(data.get("message", "")),
            column=int(data.get("col", data.get("column", 0)) or 0),
            related_line=data.get("relatedLine"),
            related_column=data.get("relatedCol"),
        )


@dataclass
class AnalysisOutcome:
    """Result of running the engine on one file: diagnostics, a parse error, or a crash."""
    kind: OutcomeKind
    diagnostics: List[Diagnostic] = field(default_factory=list)
    parse_error: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Classification:
    visible: bool
    severity: Optional[Severity] = None # None when the code is suppressed


@dataclass(frozen=True)
class ReviewComment:
    """
    A diagnostic bound to a file, with its computed severity.
    `body` is the raw message; rendering happens in the review builder.
    """
    path: str
    line: int
    code: str
    body: str
    severity: Severity


@dataclass(frozen=True)
class InlineComment:
    path: str
    line: int
    body: str
    side: str = "RIGHT" # New side of the diff

    def to_payload(self) -> Dict[str, Any]:
        return {"path": self.path, "line": self.line, "side": self.side, "body": self.body}


@dataclass
class ReviewSubmission:
    """The single review posted per run."""
    body: Optional[str]
    comments: List[InlineComment] = field(default_factory=list)
    event: str = "COMMENT" # Never APPROVE or REQUEST_CHANGES

    def to_payload(self, commit_sha: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "commit_id": commit_sha,
            "event": self.event,
            "comments": [c.to_payload() for c in self.comments],
        }
        if self.body is not None:
            payload["body"] = self.body
        return payload


@dataclass
class RunSummary:
    files_analyzed: int = 0
    total_warnings: int = 0
    error_count: int = 0
    review_posted: bool = False
