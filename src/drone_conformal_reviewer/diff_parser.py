# src/drone_conformal_reviewer/diff_parser.py
import logging
import re
import subprocess
from typing import Iterable, List, Optional, Set

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from .models import ChangedFile, FileStatus, LineIndex

logger = logging.getLogger(__name__)

# @@ -oldStart,oldCount +newStart,newCount @@
HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")


def parse_patch_lines(patch: str) -> Set[int]:
    """
    Returns the new-file line numbers (1-based) added by a unified diff patch.

    The cursor tracks the next new-side line. Hunk headers reset it, added
    lines are recorded and advance it, removed lines leave it alone, and
    anything else (context, blank, "\\ No newline") only advances it.
    Content before the first hunk header has no valid coordinate and is
    never recorded.
    """
    lines: Set[int] = set()
    current_line = 0
    in_hunk = False

    for raw in patch.split("\n"):
        hunk_match = HUNK_HEADER_RE.match(raw)
        if hunk_match:
            current_line = int(hunk_match.group(1))
            in_hunk = True
            continue

        if raw.startswith("+"):
            if in_hunk:
                lines.add(current_line)
            current_line += 1
        elif raw.startswith("-"):
            pass # No new-side coordinate
        else:
            current_line += 1

    return lines


def build_line_index(files: Iterable[ChangedFile]) -> LineIndex:
    """
    Builds the map of path -> changed line numbers for the PR's files.

    Removed files and files without a patch get no entry at all.
    """
    index: LineIndex = {}
    for changed_file in files:
        if changed_file.status == FileStatus.REMOVED:
            logger.debug(f"Not indexing removed file: {changed_file.path}")
            continue
        if not changed_file.patch:
            logger.debug(f"Not indexing file without patch: {changed_file.path}")
            continue
        index[changed_file.path] = parse_patch_lines(changed_file.patch)

    logger.info(f"Indexed changed lines for {len(index)} files.")
    return index


def _strip_prefix(path: str, prefix: str) -> str:
    return path[len(prefix):] if path.startswith(prefix) else path


def parse_diff_text(diff_text: str) -> List[ChangedFile]:
    """
    Splits raw multi-file diff text (e.g. from `git diff`) into ChangedFile entries
    shaped like the SCM's changed-file listing.

    Args:
        diff_text: The raw diff output as a string.

    Returns:
        A list of ChangedFile objects, one per file in the diff.
    """
    if not diff_text:
        logger.info("Received empty diff text, returning no changed files.")
        return []

    try:
        patch_set = PatchSet(diff_text)
    except UnidiffParseError as e:
        logger.error(f"Failed to parse diff text with unidiff: {e}", exc_info=True)
        logger.debug(f"Problematic diff text (first 500 chars): {diff_text[:500]}")
        return []

    changed_files: List[ChangedFile] = []
    for patched_file in patch_set:
        old_path = _strip_prefix(patched_file.source_file, "a/")
        new_path = _strip_prefix(patched_file.target_file, "b/")

        if patched_file.is_removed_file or new_path == "/dev/null":
            status = FileStatus.REMOVED
            new_path = old_path
        elif patched_file.is_added_file or old_path == "/dev/null":
            status = FileStatus.ADDED
        elif old_path != new_path:
            status = FileStatus.RENAMED
        else:
            status = FileStatus.MODIFIED

        if getattr(patched_file, "is_binary_file", False) or len(patched_file) == 0:
            patch = None
        else:
            # str(hunk) carries its header plus prefixed lines, which is the SCM `patch` shape
            patch = "".join(str(hunk) for hunk in patched_file).rstrip("\n")

        changed_files.append(ChangedFile(
            path=new_path,
            status=status,
            patch=patch,
            previous_path=old_path if status == FileStatus.RENAMED else None,
        ))

    logger.info(f"Parsed {len(changed_files)} files from diff text.")
    return changed_files


def get_git_diff(base_sha: str, head_sha: str, cwd: Optional[str] = None) -> Optional[str]:
    """Returns `git diff base head` for a local checkout, or None if git fails."""
    cmd = ["git", "diff", "--no-color", "--no-ext-diff", base_sha, head_sha]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=cwd)
    except FileNotFoundError:
        logger.error("'git' command not found. Ensure Git is installed and in PATH.")
        return None

    if result.returncode != 0:
        logger.error(f"git diff {base_sha}..{head_sha} failed (stderr: {result.stderr.strip()}).")
        return None
    return result.stdout
