import base64
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import jwt
import requests

from orgmirror.config import settings
from orgmirror.core.exceptions import AuthError, GitHubAPIError, GitHubTimeout, NotFound
from orgmirror.integrations.github.client import GitHubClient, USER_AGENT
from orgmirror.utils.logger import logger


BOT_COMMENT_MARKER = "<!-- ORGMIRROR_BOT -->"
PULL_REQUEST_TEMPLATE_PATH = ".github/pull_request_template.md"


class GitHubApp:
    """GitHub App authentication: app JWTs and cached installation tokens."""

    def __init__(
        self,
        app_id: Optional[str] = None,
        private_key_path: Optional[str] = None,
        api_url: str = settings.GITHUB_API_URL,
    ):
        self.app_id = app_id or settings.GITHUB_APP_ID
        self.private_key_path = private_key_path or settings.GITHUB_APP_PRIVATE_KEY_PATH
        self.api_url = api_url.rstrip("/")

        if not all([self.app_id, self.private_key_path]):
            error_msg = (
                "GitHub environment variables not properly configured. "
                "Please set GITHUB_APP_ID and GITHUB_APP_PRIVATE_KEY_PATH"
            )
            logger.error(error_msg)
            raise AuthError(error_msg)

        # Cache for installation access tokens with expiration
        self._access_tokens: Dict[int, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def generate_jwt(self) -> str:
        """Generate a JWT token for GitHub App authentication.

        Returns:
            str: JWT token for GitHub API authentication

        Raises:
            AuthError: If there's an issue generating the JWT token
        """
        try:
            with open(self.private_key_path, "r") as f:
                private_key = f.read()

            payload = {
                "iat": int(time.time()) - 60,  # 1 minute in the past for clock skew
                "exp": int(time.time()) + (9 * 60),  # 9 minutes from now (max 10)
                "iss": self.app_id,
            }

            return jwt.encode(payload, private_key, algorithm="RS256")

        except FileNotFoundError:
            error_msg = f"Private key file not found at {self.private_key_path}"
            logger.error(error_msg)
            raise AuthError(error_msg)
        except (ValueError, jwt.exceptions.PyJWTError) as e:
            error_msg = f"Failed to generate JWT token: {str(e)}"
            logger.error(error_msg)
            raise AuthError(error_msg)

    def _app_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.generate_jwt()}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }

    def get_installation_access_token(self, installation_id: int) -> str:
        """Get an installation access token, with caching.

        Raises:
            AuthError: If the token cannot be retrieved. This is fatal to a
                reconciliation pass.
        """
        now = time.time()
        with self._lock:
            token_data = self._access_tokens.get(installation_id)
            if token_data and now < token_data.get("expires_at", 0):
                return token_data["token"]

        try:
            response = requests.post(
                f"{self.api_url}/app/installations/{installation_id}/access_tokens",
                headers=self._app_headers(),
                timeout=30,
            )
            response.raise_for_status()

            access_token = response.json().get("token")
            if not access_token:
                raise AuthError("No access token found in response")
        except requests.exceptions.RequestException as e:
            error_msg = f"Failed to get installation access token for {installation_id}: {e}"
            if e.response is not None:
                error_msg += f" - Response: {e.response.text}"
            logger.error(error_msg)
            raise AuthError(error_msg)

        with self._lock:
            # GitHub tokens last 1 hour
            self._access_tokens[installation_id] = {
                "token": access_token,
                "expires_at": now + 3540,
            }
        return access_token

    def get_installation(self, installation_id: int) -> Dict[str, Any]:
        """Fetch the authoritative installation payload."""
        try:
            response = requests.get(
                f"{self.api_url}/app/installations/{installation_id}",
                headers=self._app_headers(),
                timeout=30,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            error_msg = f"Failed to fetch installation {installation_id}: {e}"
            logger.error(error_msg)
            raise AuthError(error_msg)

    def client_for(self, installation_id: int) -> GitHubClient:
        return GitHubClient(
            token_provider=lambda: self.get_installation_access_token(installation_id)
        )


class GitHub:
    """Domain calls against one installation's organization."""

    def __init__(
        self,
        client: GitHubClient,
        owner: str,
        app_name: str = settings.GITHUB_APP_NAME,
    ):
        self.client = client
        self.owner = owner
        self.app_name = app_name

    @property
    def bot_login(self) -> str:
        return f"{self.app_name}[bot]"

    def _repo(self, repo: str) -> str:
        return f"repos/{self.owner}/{repo}"

    # Repositories and branches

    def list_languages(self, repo: str) -> List[str]:
        languages = self.client.get_one(f"{self._repo(repo)}/languages") or {}
        return list(languages.keys())

    def _with_languages(self, repo: Dict[str, Any]) -> Dict[str, Any]:
        languages = self.list_languages(repo["name"])
        return {
            **repo,
            "languages": languages,
            "primary_language": languages[0] if languages else None,
        }

    def get_repository(self, repo: str) -> Optional[Dict[str, Any]]:
        data = self.client.get_one(self._repo(repo))
        if not data:
            return None
        return self._with_languages(data)

    def list_repositories(self) -> List[Dict[str, Any]]:
        repos = self.client.paginate(f"orgs/{self.owner}/repos", params={"type": "all"})
        listed = []
        for repo in repos:
            try:
                listed.append(self._with_languages(repo))
            except (NotFound, GitHubTimeout, GitHubAPIError) as e:
                # The repository itself is known; only its language list is missing.
                logger.error(f"Failed to fetch languages of {repo['name']}: {e}")
                primary = repo.get("language")
                listed.append(
                    {**repo, "languages": [primary] if primary else [], "primary_language": primary}
                )
        return listed

    def list_branches(self, repo: str) -> List[str]:
        branches = self.client.paginate(f"{self._repo(repo)}/branches")
        return [branch["name"] for branch in branches]

    # Pull requests

    def list_pull_request_files(self, repo: str, number: int) -> List[Dict[str, Any]]:
        files = self.client.paginate(f"{self._repo(repo)}/pulls/{number}/files")
        return [
            {
                "filename": f.get("filename"),
                "status": f.get("status"),
                "additions": f.get("additions"),
                "deletions": f.get("deletions"),
                "changes": f.get("changes"),
                "patch": f.get("patch"),
            }
            for f in files
        ]

    def get_pull_request(self, repo: str, number: int) -> Optional[Dict[str, Any]]:
        """The PR with its changed files, or None when it does not exist."""
        pr = self.client.get_one(f"{self._repo(repo)}/pulls/{number}")
        if not pr:
            return None
        return {**pr, "changed_files": self.list_pull_request_files(repo, number)}

    def list_pull_requests(
        self, repo: str, state: str = "all"
    ) -> List[Dict[str, Any]]:
        return self.client.paginate(f"{self._repo(repo)}/pulls", params={"state": state})

    def get_pull_request_template(self, repo: str) -> Optional[str]:
        data = self.client.get_one(
            f"{self._repo(repo)}/contents/{PULL_REQUEST_TEMPLATE_PATH}"
        )
        if not data or "content" not in data:
            return None
        return base64.b64decode(data["content"]).decode("utf-8", errors="replace")

    def update_pull_request_body(self, repo: str, number: int, body: str) -> Dict[str, Any]:
        return self.client.patch(f"{self._repo(repo)}/pulls/{number}", json={"body": body})

    def submit_review(
        self,
        repo: str,
        number: int,
        event: str,
        body: Optional[str],
        comments: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Replace any pending bot review with a freshly submitted one."""
        pr = self.client.get_one(f"{self._repo(repo)}/pulls/{number}")
        if not pr:
            raise NotFound(f"Pull request {repo}#{number} not found")

        reviews = self.client.paginate(f"{self._repo(repo)}/pulls/{number}/reviews")
        for review in reviews:
            if review.get("state") != "PENDING":
                continue
            if (review.get("user") or {}).get("login") != self.bot_login:
                continue
            try:
                self.client.delete(
                    f"{self._repo(repo)}/pulls/{number}/reviews/{review['id']}"
                )
            except Exception as e:
                logger.error(f"Failed to dismiss review {review.get('id')}: {e}")

        payload = {
            "commit_id": (pr.get("head") or {}).get("sha"),
            "body": body,
            "event": event,
            "comments": [
                {
                    "path": comment["path"],
                    "body": comment["body"],
                    "line": comment["position"],
                    "side": "RIGHT",
                }
                for comment in comments
            ],
        }
        response = self.client.post(f"{self._repo(repo)}/pulls/{number}/reviews", json=payload)
        logger.info(
            f"Review submitted to PR #{number} in repo {repo}: {response.get('html_url')}"
        )
        return response

    # Conversation

    def list_issue_comments(
        self, repo: str, number: int, since: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Comments oldest first; ``since`` limits them to those updated after it."""
        params = None
        if since is not None:
            params = {"since": since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")}
        return self.client.paginate(
            f"{self._repo(repo)}/issues/{number}/comments", params=params
        )

    def get_latest_issue_comment(
        self, repo: str, number: int, since: Optional[datetime] = None
    ) -> Optional[Dict[str, Any]]:
        comments = self.list_issue_comments(repo, number, since=since)
        return comments[-1] if comments else None

    def create_issue_comment(self, repo: str, number: int, body: str) -> Dict[str, Any]:
        return self.client.post(
            f"{self._repo(repo)}/issues/{number}/comments",
            json={"body": f"{body}\n\n{BOT_COMMENT_MARKER}"},
        )

    # Members

    def list_members(self) -> List[Dict[str, Any]]:
        return self.client.paginate(f"orgs/{self.owner}/members")

    def list_recent_commits(self, repo: str) -> List[Dict[str, Any]]:
        """The most recent page of commits, newest first."""
        return self.client.list_page(f"{self._repo(repo)}/commits", page=1)


@dataclass
class InstallationContext:
    """Everything a reconciliation pass needs to address one installation."""

    installation_id: int
    owner: str
    github: GitHub


def open_installation(
    app: GitHubApp, installation_id: int, owner: Optional[str] = None
) -> InstallationContext:
    """Authenticate against an installation.

    Raises:
        AuthError: when the token or the installation payload cannot be
            fetched; callers abort the pass.
    """
    if owner is None:
        installation = app.get_installation(installation_id)
        owner = (installation.get("account") or {}).get("login")
        if not owner:
            raise AuthError(f"Installation {installation_id} has no account login")
    # Fail fast on bad credentials before any per-item work starts.
    app.get_installation_access_token(installation_id)
    return InstallationContext(
        installation_id=installation_id,
        owner=owner,
        github=GitHub(app.client_for(installation_id), owner),
    )
