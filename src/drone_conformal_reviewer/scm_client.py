# src/drone_conformal_reviewer/scm_client.py
import json
import logging
import requests # Using requests library for HTTP calls
from typing import List, Dict, Any, Optional, TYPE_CHECKING

from .models import ChangedFile

if TYPE_CHECKING:
    from .plugin_config import PluginConfig
    from .models import ReviewSubmission

logger = logging.getLogger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"
FILES_PER_PAGE = 100 # GitHub's maximum page size for pulls/{n}/files
REQUEST_TIMEOUT = 30


class SCMRequestError(Exception):
    """An SCM API call failed (transport error or unexpected status)."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SCMPermissionError(SCMRequestError):
    """The token lacks permission for the call (HTTP 403)."""


class GitHubClient:
    """
    Minimal GitHub REST client: list the PR's changed files and create a review.
    """
    def __init__(self, config: 'PluginConfig'):
        self.config = config
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "drone-conformal-reviewer",
        }
        if self.config.scm_token:
            self.headers["Authorization"] = f"token {self.config.scm_token}"
        self.api_base_url = (config.scm_api_url or GITHUB_API_BASE_URL).rstrip("/")

        logger.info(f"SCM Client initialized for base URL: {self.api_base_url}")

    @property
    def _pull_endpoint(self) -> str:
        return f"/repos/{self.config.ci_repo_owner}/{self.config.ci_repo_name}/pulls/{self.config.ci_pr_number}"

    def _request(self, method: str, endpoint: str, params: Optional[Dict] = None,
                 json_data: Optional[Dict] = None, expected_status: int = 200) -> Any:
        """Helper method to make HTTP requests. Raises SCMRequestError on failure."""
        url = f"{self.api_base_url}{endpoint}"
        try:
            logger.debug(f"Making SCM API {method} request to {url} with params {params}")
            response = requests.request(method, url, headers=self.headers, params=params,
                                        json=json_data, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise SCMRequestError(f"SCM API request to {url} failed: {e}") from e

        if response.status_code == 403:
            raise SCMPermissionError(
                f"SCM API request to {url} was forbidden: {response.text[:500]}", status_code=403
            )
        if response.status_code != expected_status:
            raise SCMRequestError(
                f"SCM API request to {url} failed with status {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        if response.content: # Check if there is content to parse
            return response.json()
        return None

    def list_pr_files(self) -> List[ChangedFile]:
        """
        Fetches every changed file of the pull request, following pagination
        until a short page is returned.
        """
        endpoint = f"{self._pull_endpoint}/files"
        changed_files: List[ChangedFile] = []
        page = 1
        while True:
            data = self._request("GET", endpoint, params={"per_page": FILES_PER_PAGE, "page": page})
            if not isinstance(data, list):
                raise SCMRequestError(f"Unexpected response listing files for PR #{self.config.ci_pr_number}")
            changed_files.extend(ChangedFile.from_api(item) for item in data)
            if len(data) < FILES_PER_PAGE:
                break
            page += 1

        logger.info(f"Fetched {len(changed_files)} changed files for PR #{self.config.ci_pr_number}.")
        return changed_files

    def create_review(self, submission: 'ReviewSubmission') -> Dict[str, Any]:
        """
        Posts the review with its inline comments in a single call.
        https://docs.github.com/en/rest/pulls/reviews#create-a-review-for-a-pull-request
        """
        payload = submission.to_payload(self.config.ci_head_sha)
        logger.info(f"Posting review with {len(submission.comments)} inline comments to PR #{self.config.ci_pr_number}.")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Review payload: {json.dumps(payload, indent=2)}")

        return self._request("POST", f"{self._pull_endpoint}/reviews", json_data=payload) or {}
