# src/drone_conformal_reviewer/plugin_config.py
import os
import logging
from dataclasses import dataclass, field
from typing import Optional, List

from .analyzer import DEFAULT_ANALYZER_COMMAND, DEFAULT_ANALYZER_TIMEOUT

logger = logging.getLogger(__name__)

# Default values for optional parameters
DEFAULT_PATHS = "**/*.m"
DEFAULT_EXCLUDE_PATTERNS = ""
DEFAULT_LOG_LEVEL = "INFO"
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _env_bool(name: str, default: bool) -> bool:
    """Reads a boolean PLUGIN_ setting; only "true"/"false" (any case) are recognised."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    logger.warning(f"Ignoring invalid boolean {name}='{value}', using {default}.")
    return default


def _env_int(name: str, default: int) -> int:
    """Reads a positive integer PLUGIN_ setting; malformed values are a configuration error."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        number = int(value.strip())
    except ValueError:
        raise ValueError(f"{name} must be a positive integer, got '{value}'") from None
    if number <= 0:
        raise ValueError(f"{name} must be a positive integer, got '{value}'")
    return number


def _env_list(name: str, default: str) -> List[str]:
    return [p.strip() for p in os.getenv(name, default).split(',') if p.strip()]


@dataclass
class PluginConfig:
    """
    Holds all configuration for the Conformal reviewer plugin,
    primarily sourced from PLUGIN_ prefixed environment variables.
    """

    # --- Analysis Settings ---
    strict: bool = field(default_factory=lambda: _env_bool("PLUGIN_STRICT", False))
    fixpoint: bool = field(default_factory=lambda: _env_bool("PLUGIN_FIXPOINT", False))
    analyzer_command: str = field(
        default_factory=lambda: os.getenv("PLUGIN_ANALYZER_COMMAND") or DEFAULT_ANALYZER_COMMAND
    )
    analyzer_timeout: int = field(
        default_factory=lambda: _env_int("PLUGIN_ANALYZER_TIMEOUT", DEFAULT_ANALYZER_TIMEOUT)
    )

    # --- Review Behavior ---
    filter_to_diff: bool = field(default_factory=lambda: _env_bool("PLUGIN_FILTER_TO_DIFF", True))
    fail_on_error: bool = field(default_factory=lambda: _env_bool("PLUGIN_FAIL_ON_ERROR", False))
    paths: List[str] = field(default_factory=lambda: _env_list("PLUGIN_PATHS", DEFAULT_PATHS))
    exclude_patterns: List[str] = field(
        default_factory=lambda: _env_list("PLUGIN_EXCLUDE_PATTERNS", DEFAULT_EXCLUDE_PATTERNS)
    )
    local_diff: bool = field(default_factory=lambda: _env_bool("PLUGIN_LOCAL_DIFF", False)) # git diff instead of SCM API
    dry_run: bool = field(default_factory=lambda: _env_bool("PLUGIN_DRY_RUN", False)) # log the review, don't post it
    log_level: str = field(
        default_factory=lambda: os.getenv("PLUGIN_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    )

    # --- SCM Settings ---
    scm_token: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_SCM_TOKEN") or os.getenv("GITHUB_TOKEN")
    ) # Handled as a secret by CI
    scm_api_url: Optional[str] = field(
        default_factory=lambda: os.getenv("PLUGIN_SCM_API_URL")
    ) # For GitHub Enterprise

    # --- CI Environment Information (populated by main.py from Drone variables) ---
    ci_workspace: Optional[str] = None
    ci_repo_owner: Optional[str] = None
    ci_repo_name: Optional[str] = None
    ci_repo_link: Optional[str] = None
    ci_pr_number: Optional[int] = None
    ci_head_sha: Optional[str] = None
    ci_base_sha: Optional[str] = None
    is_pr_event: bool = False

    def __post_init__(self):
        if self.log_level not in VALID_LOG_LEVELS:
            logger.warning(f"Invalid PLUGIN_LOG_LEVEL '{self.log_level}'. Defaulting to '{DEFAULT_LOG_LEVEL}'.")
            self.log_level = DEFAULT_LOG_LEVEL
        if not self.paths:
            self.paths = [DEFAULT_PATHS]

    @property
    def workspace(self) -> str:
        return self.ci_workspace or os.getcwd()


def load_plugin_config() -> PluginConfig:
    """
    Factory function to create and return a PluginConfig instance.
    """
    return PluginConfig()
