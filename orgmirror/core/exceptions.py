"""Error taxonomy shared by the GitHub client, the store and the reconciler.

Local failures (``NotFound``, ``GitHubTimeout``, ``ParseError``) are handled
where they occur and degrade to an empty result for the item involved.
``AuthError`` aborts a whole reconciliation pass. ``RateLimited`` never
reaches callers of the client; it only exists so the retry loop can name it.
"""

from typing import Optional


class OrgMirrorError(Exception):
    """Base class for every error raised by orgmirror."""


class AuthError(OrgMirrorError):
    """Credentials are missing, invalid or lack permission."""


class RateLimited(OrgMirrorError):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class NotFound(OrgMirrorError):
    pass


class GitHubTimeout(OrgMirrorError):
    pass


class GitHubAPIError(OrgMirrorError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(OrgMirrorError):
    pass


class PersistenceError(OrgMirrorError):
    pass


class ProviderError(OrgMirrorError):
    """The LLM provider failed to produce a completion."""
