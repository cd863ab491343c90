import time
from typing import Any, Callable, Dict, List, Optional

import requests

from orgmirror.config import settings
from orgmirror.core.exceptions import (
    AuthError,
    GitHubAPIError,
    GitHubTimeout,
    NotFound,
    RateLimited,
)
from orgmirror.utils.logger import logger


USER_AGENT = "orgmirror v0.1"


class GitHubClient:
    """
    Rate-limited, paginated access to the GitHub REST API.

    Every request is bounded by ``timeout``. A 403/429 attributed to rate
    limiting sleeps ``rate_limit_cooldown`` and re-issues the same request
    until it goes through. Network timeouts and 5xx responses sleep
    ``timeout_cooldown`` and are retried ``max_timeout_retries`` times before
    ``GitHubTimeout``/``GitHubAPIError`` is raised.
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        base_url: str = settings.GITHUB_API_URL,
        timeout: float = settings.GITHUB_REQUEST_TIMEOUT,
        page_size: int = settings.GITHUB_PAGE_SIZE,
        page_delay: float = settings.GITHUB_PAGE_DELAY,
        rate_limit_cooldown: float = settings.RATE_LIMIT_COOLDOWN_SECONDS,
        timeout_cooldown: float = settings.TIMEOUT_COOLDOWN_SECONDS,
        max_timeout_retries: int = settings.MAX_TIMEOUT_RETRIES,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.page_delay = page_delay
        self.rate_limit_cooldown = rate_limit_cooldown
        self.timeout_cooldown = timeout_cooldown
        self.max_timeout_retries = max_timeout_retries
        self.session = session or requests.Session()
        self.sleep = sleep

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token_provider()}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }

    def _url(self, resource: str) -> str:
        if resource.startswith("http"):
            return resource
        return f"{self.base_url}/{resource.lstrip('/')}"

    @staticmethod
    def _is_rate_limited(response: requests.Response) -> bool:
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False
        if response.headers.get("X-RateLimit-Remaining") == "0":
            return True
        return "rate limit" in (response.text or "").lower()

    def request(
        self,
        method: str,
        resource: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> requests.Response:
        url = self._url(resource)
        transient_failures = 0

        while True:
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=self._headers(),
                    params=params,
                    json=json,
                    timeout=self.timeout,
                )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                transient_failures += 1
                if transient_failures > self.max_timeout_retries:
                    logger.error(f"Request timeout for {method} {url}: {e}")
                    raise GitHubTimeout(f"GitHub API request timeout: {method} {url}")
                logger.warning(
                    f"Request timeout for {method} {url}. Retrying in {self.timeout_cooldown}s "
                    f"({transient_failures}/{self.max_timeout_retries})."
                )
                self.sleep(self.timeout_cooldown)
                continue

            if self._is_rate_limited(response):
                error = RateLimited(
                    f"GitHub API rate limit exceeded for {method} {url}",
                    retry_after=self.rate_limit_cooldown,
                )
                logger.warning(f"{error}. Cooling down for {error.retry_after}s.")
                self.sleep(error.retry_after)
                continue

            status = response.status_code
            if status in (401, 403):
                logger.error(f"Authentication failed for {method} {url}: {response.text}")
                raise AuthError(f"GitHub authentication failed ({status}) for {url}")
            if status == 404:
                raise NotFound(f"Not found: {url}")
            if status >= 500:
                transient_failures += 1
                if transient_failures > self.max_timeout_retries:
                    raise GitHubAPIError(
                        f"GitHub server error {status} for {method} {url}", status
                    )
                logger.warning(
                    f"GitHub server error {status} for {method} {url}. "
                    f"Retrying in {self.timeout_cooldown}s."
                )
                self.sleep(self.timeout_cooldown)
                continue
            if status >= 400:
                raise GitHubAPIError(
                    f"GitHub API error {status} for {method} {url}: {response.text}",
                    status,
                )
            return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def list_page(
        self,
        resource: str,
        page: int,
        page_size: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None,
        items_key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query = dict(params or {})
        query["per_page"] = page_size or self.page_size
        query["page"] = page
        data = self._json(self.request("GET", resource, params=query))
        if items_key:
            data = data.get(items_key, []) if isinstance(data, dict) else []
        return data if isinstance(data, list) else []

    def paginate(
        self,
        resource: str,
        params: Optional[Dict[str, Any]] = None,
        page_size: Optional[int] = None,
        items_key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of ``resource``.

        Stops on an empty page or a page shorter than ``page_size``.
        """
        size = page_size or self.page_size
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch = self.list_page(resource, page, size, params, items_key)
            if not batch:
                break
            items.extend(batch)
            if len(batch) < size:
                break
            page += 1
            if self.page_delay:
                self.sleep(self.page_delay)
        return items

    def get_one(
        self, resource: str, params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return self._json(self.request("GET", resource, params=params))
        except NotFound:
            logger.info(f"Resource not found: {resource}")
            return None

    def post(self, resource: str, json: Optional[Any] = None) -> Any:
        return self._json(self.request("POST", resource, json=json))

    def patch(self, resource: str, json: Optional[Any] = None) -> Any:
        return self._json(self.request("PATCH", resource, json=json))

    def delete(self, resource: str) -> Any:
        return self._json(self.request("DELETE", resource))
