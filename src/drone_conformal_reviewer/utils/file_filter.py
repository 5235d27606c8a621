from typing import List, Optional
from pathspec import GitIgnoreSpec


def filter_files_by_patterns(
    files: List[str],
    include_patterns: Optional[List[str]] = None,
    exclude_patterns: Optional[List[str]] = None
) -> List[str]:
    """
    Filter a list of files based on include and exclude patterns.

    Args:
        files: List of file paths to filter
        include_patterns: Optional list of patterns to include (git-style patterns)
        exclude_patterns: Optional list of patterns to exclude (git-style patterns)

    Returns:
        List of filtered file paths, in their original order
    """
    if not files:
        return []

    include_spec = GitIgnoreSpec.from_lines(include_patterns) if include_patterns else None
    exclude_spec = GitIgnoreSpec.from_lines(exclude_patterns) if exclude_patterns else None

    # No include patterns means include everything
    included_files = [f for f in files if include_spec.match_file(f)] if include_spec else list(files)

    if exclude_spec:
        return [f for f in included_files if not exclude_spec.match_file(f)]
    return included_files
