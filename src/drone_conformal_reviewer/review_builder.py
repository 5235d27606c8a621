# src/drone_conformal_reviewer/review_builder.py
import logging
from typing import List, Optional, Sequence

from .models import InlineComment, LineIndex, ReviewComment, ReviewSubmission, Severity

logger = logging.getLogger(__name__)

TOOL_NAME = "Conformal"
MAX_INLINE_COMMENTS = 50 # GitHub soft limit per review
MAX_SUMMARY_ITEMS = 20

SEVERITY_ICONS = {
    Severity.ERROR: ":x:",
    Severity.WARNING: ":warning:",
    Severity.HINT: ":information_source:",
}


def format_comment_body(comment: ReviewComment) -> str:
    """Renders the markdown body of an inline comment."""
    icon = SEVERITY_ICONS.get(comment.severity, ":information_source:")
    return f"{icon} **{TOOL_NAME}** `{comment.code}`\n\n{comment.body}"


def format_out_of_diff_summary(comments: Sequence[ReviewComment]) -> str:
    """Collapsible list of diagnostics that landed on lines outside the diff."""
    listed = "\n".join(
        f"- `{c.path}:{c.line}`: {c.body}" for c in comments[:MAX_SUMMARY_ITEMS]
    )
    remainder = len(comments) - MAX_SUMMARY_ITEMS
    more = f"\n- ... and {remainder} more" if remainder > 0 else ""
    return (
        f"<details><summary>{len(comments)} warnings on unchanged lines</summary>\n\n"
        f"{listed}{more}\n</details>"
    )


def is_inline_eligible(comment: ReviewComment, index: LineIndex) -> bool:
    file_lines = index.get(comment.path)
    return file_lines is not None and comment.line in file_lines


def build_review(
    comments: Sequence[ReviewComment],
    index: LineIndex,
    filter_to_diff: bool,
) -> Optional[ReviewSubmission]:
    """
    Assembles the single review for this run.

    Comments on diff lines become inline comments (capped at
    MAX_INLINE_COMMENTS). The review body reports the inline overflow and,
    when filter_to_diff is set, summarizes comments on unchanged lines.

    Args:
        comments: All visible review comments for the run.
        index: Changed line numbers per file.
        filter_to_diff: Whether out-of-diff comments get a body summary.

    Returns:
        The ReviewSubmission, or None when there is nothing to post.
    """
    inline: List[ReviewComment] = []
    out_of_diff: List[ReviewComment] = []
    for comment in comments:
        if is_inline_eligible(comment, index):
            inline.append(comment)
        else:
            out_of_diff.append(comment)

    inline_to_post = inline[:MAX_INLINE_COMMENTS]
    overflow = len(inline) - len(inline_to_post)

    body_parts: List[str] = []
    if overflow > 0:
        body_parts.append(f"... and {overflow} more warnings not shown inline.")

    if out_of_diff:
        if filter_to_diff:
            body_parts.append(format_out_of_diff_summary(out_of_diff))
        else:
            # Inline comments need a diff anchor and there is no summary in this mode.
            logger.info(f"Dropping {len(out_of_diff)} warnings on unchanged lines (filter_to_diff is off).")

    if not inline_to_post and not body_parts:
        return None

    logger.info(
        f"Built review: {len(inline_to_post)} inline comments, "
        f"{overflow} overflow, {len(out_of_diff)} on unchanged lines."
    )
    return ReviewSubmission(
        body="\n\n".join(body_parts) or None,
        comments=[
            InlineComment(path=c.path, line=c.line, body=format_comment_body(c))
            for c in inline_to_post
        ],
    )
