from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class WebhookEvent:
    """A verified GitHub webhook delivery."""

    name: str
    action: Optional[str] = None
    installation_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    delivery_id: Optional[str] = None

    @property
    def repo_name(self) -> Optional[str]:
        return (self.payload.get("repository") or {}).get("name")

    @property
    def previous_repo_name(self) -> Optional[str]:
        changes = self.payload.get("changes") or {}
        return ((changes.get("repository") or {}).get("name") or {}).get("from")

    @property
    def owner_login(self) -> Optional[str]:
        installation = self.payload.get("installation") or {}
        for source in (
            installation.get("account"),
            self.payload.get("organization"),
            (self.payload.get("repository") or {}).get("owner"),
        ):
            if source and source.get("login"):
                return source["login"]
        return None

    @property
    def pr_number(self) -> Optional[int]:
        if self.payload.get("pull_request"):
            return self.payload["pull_request"].get("number")
        issue = self.payload.get("issue") or {}
        if issue.get("pull_request"):
            return issue.get("number")
        return self.payload.get("number")

    @property
    def comment(self) -> Optional[Dict[str, Any]]:
        return self.payload.get("comment")

    @property
    def is_pull_request_comment(self) -> bool:
        return self.name == "issue_comment" and bool(
            (self.payload.get("issue") or {}).get("pull_request")
        )

    def __str__(self):
        return f"WebhookEvent: {self.name}.{self.action} (installation {self.installation_id})"
