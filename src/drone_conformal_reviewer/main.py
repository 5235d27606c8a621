# src/drone_conformal_reviewer/main.py
import os
import sys
import json
import logging
from typing import List, Optional
from urllib.parse import urlparse
from dotenv import load_dotenv # For local development using .env file

from . import __version__
from .plugin_config import DEFAULT_LOG_LEVEL, load_plugin_config, PluginConfig
from .analyzer import Engine, MATLAB_SUFFIX, SubprocessEngine, analyze_file, read_siblings, read_source
from .scm_client import GitHubClient, SCMPermissionError, SCMRequestError
from .diff_parser import build_line_index, get_git_diff, parse_diff_text
from .review_builder import build_review
from .models import ChangedFile, FileStatus, ReviewComment, ReviewSubmission, RunSummary, Severity
from .utils.file_filter import filter_files_by_patterns

# Global logger for the module
logger = logging.getLogger("drone_conformal_reviewer") # Use a named logger

PERMISSION_HINT = (
    "drone-conformal-reviewer requires pull-requests: write permission. "
    "Use a token that can create pull request reviews (e.g. add "
    "\"permissions: { pull-requests: write }\" for a GitHub Actions token)."
)


def setup_logging(log_level_str: str):
    """Configures basic logging for the plugin."""
    numeric_level = getattr(logging, log_level_str.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        logger.warning(f"Invalid log level '{log_level_str}'. Defaulting to INFO.")

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_repo_link(repo_link: str) -> Optional[tuple]:
    """Splits a clone/web URL into (owner, name); owner may contain '/' for nested namespaces."""
    path_segments = [segment for segment in urlparse(repo_link).path.split('/') if segment]
    if path_segments and path_segments[-1].endswith(".git"):
        path_segments[-1] = path_segments[-1][:-4]
    if len(path_segments) < 2:
        return None
    return "/".join(path_segments[:-1]), path_segments[-1]


def populate_ci_environment_info(config: PluginConfig):
    """
    Populates the PluginConfig object with information derived from Drone CI
    environment variables.
    """
    logger.info("Populating CI environment information into config...")
    config.ci_workspace = os.getenv("DRONE_WORKSPACE") or config.ci_workspace

    pr_number_str = os.getenv("DRONE_PULL_REQUEST")
    config.is_pr_event = False
    if not pr_number_str:
        logger.info("Not a PR event (DRONE_PULL_REQUEST not set).")
        return
    try:
        config.ci_pr_number = int(pr_number_str)
    except ValueError:
        logger.error(f"Invalid DRONE_PULL_REQUEST value: {pr_number_str}. Not a number.")
        return

    config.ci_head_sha = os.getenv("DRONE_COMMIT_SHA") or os.getenv("DRONE_COMMIT") or os.getenv("DRONE_COMMIT_AFTER")
    if not config.ci_head_sha:
        logger.error("Could not determine head SHA (DRONE_COMMIT_SHA / DRONE_COMMIT / DRONE_COMMIT_AFTER missing).")
        return
    config.ci_base_sha = os.getenv("DRONE_PULL_REQUEST_BASE_SHA") or os.getenv("DRONE_COMMIT_BEFORE")

    config.ci_repo_owner = os.getenv("DRONE_REPO_OWNER")
    config.ci_repo_name = os.getenv("DRONE_REPO_NAME")
    config.ci_repo_link = os.getenv("DRONE_REPO_LINK")
    if not (config.ci_repo_owner and config.ci_repo_name) and config.ci_repo_link:
        parsed = parse_repo_link(config.ci_repo_link)
        if parsed:
            config.ci_repo_owner, config.ci_repo_name = parsed
            logger.info(f"Parsed Repo: Owner='{config.ci_repo_owner}', Name='{config.ci_repo_name}' from link.")
        else:
            logger.error(f"Could not parse owner/repo from link: {config.ci_repo_link}")
    if not (config.ci_repo_owner and config.ci_repo_name):
        logger.error("Could not determine repository owner and name. SCM operations will fail.")
        return

    config.is_pr_event = True
    logger.info(
        f"PR #{config.ci_pr_number} in {config.ci_repo_owner}/{config.ci_repo_name}, "
        f"Base SHA: {config.ci_base_sha}, Head SHA: {config.ci_head_sha}"
    )


def fetch_changed_files(config: PluginConfig, scm_client: GitHubClient) -> List[ChangedFile]:
    """Changed files come from the SCM API, or from a local `git diff` when PLUGIN_LOCAL_DIFF is set."""
    if not config.local_diff:
        return scm_client.list_pr_files()

    if not config.ci_base_sha:
        logger.error("PLUGIN_LOCAL_DIFF requires a base SHA (DRONE_PULL_REQUEST_BASE_SHA / DRONE_COMMIT_BEFORE).")
        return []
    logger.info(f"Computing local diff {config.ci_base_sha}..{config.ci_head_sha} in {config.workspace}")
    diff_text = get_git_diff(config.ci_base_sha, config.ci_head_sha, cwd=config.workspace)
    return parse_diff_text(diff_text or "")


def select_files(config: PluginConfig, changed_files: List[ChangedFile]) -> List[ChangedFile]:
    """Keeps non-removed .m files matching the configured paths and exclude patterns."""
    candidates = [
        f for f in changed_files
        if f.status != FileStatus.REMOVED and f.path.endswith(MATLAB_SUFFIX)
    ]
    selected_paths = set(filter_files_by_patterns(
        [f.path for f in candidates], config.paths, config.exclude_patterns
    ))
    return [f for f in candidates if f.path in selected_paths]


def post_submission(config: PluginConfig, scm_client: GitHubClient, submission: ReviewSubmission) -> bool:
    """Posts the review. Failures are logged, never raised: the diagnostics are already counted."""
    if config.dry_run:
        logger.info("Dry run, review not posted. Payload:\n" +
                    json.dumps(submission.to_payload(config.ci_head_sha), indent=2))
        return False
    try:
        scm_client.create_review(submission)
    except SCMPermissionError as e:
        logger.error(PERMISSION_HINT)
        logger.debug(f"Permission failure detail: {e}")
        return False
    except SCMRequestError as e:
        logger.error(f"Failed to post review: {e}")
        return False
    logger.info("Posted review comments.")
    return True


def run_review(config: PluginConfig, scm_client: GitHubClient, engine: Engine) -> RunSummary:
    """
    Main Pull Request review process: fetch changed files, analyze each
    MATLAB file, and post one review with the results.
    """
    summary = RunSummary()

    changed_files = fetch_changed_files(config, scm_client)
    m_files = select_files(config, changed_files)
    if not m_files:
        logger.info("No .m files changed in this PR.")
        return summary

    # Exceptions here are not per-file failures and propagate to the caller
    line_index = build_line_index(m_files)

    all_comments: List[ReviewComment] = []
    for changed_file in m_files:
        content = read_source(os.path.join(config.workspace, changed_file.path))
        if content is None:
            continue
        siblings = read_siblings(changed_file.path, config.workspace)
        logger.info(f"Analyzing {changed_file.path} ({len(siblings)} sibling files)")
        all_comments.extend(analyze_file(
            changed_file.path, content, siblings, engine,
            strict=config.strict, fixpoint=config.fixpoint,
        ))
        summary.files_analyzed += 1

    summary.total_warnings = len(all_comments)
    summary.error_count = sum(1 for c in all_comments if c.severity == Severity.ERROR)
    logger.info(
        f"Analyzed {summary.files_analyzed} files: "
        f"{summary.total_warnings} warnings ({summary.error_count} errors)"
    )

    if not all_comments:
        logger.info("No warnings found. Clean!")
        return summary

    submission = build_review(all_comments, line_index, config.filter_to_diff)
    if submission is None:
        logger.info("Nothing to post: no warnings on changed lines.")
        return summary

    summary.review_posted = post_submission(config, scm_client, submission)
    return summary


def write_outputs(summary: RunSummary):
    """Exports step outputs as KEY=VALUE lines to $DRONE_OUTPUT when the runner provides it."""
    outputs = {
        "total_warnings": summary.total_warnings,
        "error_count": summary.error_count,
        "files_analyzed": summary.files_analyzed,
    }
    logger.info("Outputs: " + ", ".join(f"{k}={v}" for k, v in outputs.items()))

    output_path = os.getenv("DRONE_OUTPUT")
    if not output_path:
        return
    try:
        with open(output_path, "a", encoding="utf-8") as f:
            for key, value in outputs.items():
                f.write(f"{key}={value}\n")
    except OSError as e:
        logger.warning(f"Could not write outputs to {output_path}: {e}")


def run(config: PluginConfig, engine: Optional[Engine] = None) -> int:
    """
    Runs the plugin for an already-loaded config and returns the exit code.
    """
    populate_ci_environment_info(config)
    if not config.is_pr_event:
        logger.info("Not a valid PR event for review. Skipping.")
        write_outputs(RunSummary())
        return 0

    if not config.scm_token and not (config.local_diff and config.dry_run):
        logger.critical("PLUGIN_SCM_TOKEN is not configured. Cannot proceed.")
        return 1

    scm_client = GitHubClient(config)
    if engine is None:
        engine = SubprocessEngine(config.analyzer_command, timeout=config.analyzer_timeout)

    summary = run_review(config, scm_client, engine)
    write_outputs(summary)

    if config.fail_on_error and summary.error_count > 0:
        logger.error(f"Conformal found {summary.error_count} error-severity warnings.")
        return 1
    return 0


def main_cli():
    """
    CLI entry point. Loads .env for local dev.
    """
    # In a real CI environment, variables are injected by the system.
    if os.path.exists(".env"):
        load_dotenv(override=True)

    # Logging comes first so configuration errors are reported through it
    setup_logging(os.getenv("PLUGIN_LOG_LEVEL", DEFAULT_LOG_LEVEL))
    logger.info(f"Plugin Version: {__version__}")

    try:
        config = load_plugin_config()
    except ValueError as e:
        logger.critical(f"Invalid configuration: {e}")
        return 1

    try:
        return run(config)
    except KeyboardInterrupt:
        logger.info("Plugin execution interrupted by user (KeyboardInterrupt).")
        return 130 # Standard exit code for Ctrl+C
    except Exception as e:
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main_cli())
