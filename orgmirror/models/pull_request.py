from datetime import datetime
from typing import Optional
import enum

from sqlmodel import Field
from sqlalchemy import Column, DateTime, JSON
from orgmirror.models.base_model import BaseModel


class PullRequestStatus(str, enum.Enum):
    """Locally persisted lifecycle flag.

    ``DELETED`` cannot be expressed by the GitHub API, so once stored it is
    never replaced by a later upsert.
    """

    OPEN = "open"
    CLOSED = "closed"
    DRAFT = "draft"
    DELETED = "deleted"


class MirroredPullRequest(BaseModel, table=True):
    __tablename__ = "mirrored_pull_requests"

    installation_id: int = Field(primary_key=True)
    repo_name: str = Field(primary_key=True)
    number: int = Field(primary_key=True)
    title: str = ""
    body: Optional[str] = None
    state: Optional[str] = None
    status: str = Field(default=PullRequestStatus.OPEN.value, index=True)
    draft: bool = False
    changed_files: list = Field(default_factory=list, sa_column=Column(JSON))
    requested_reviewers: list = Field(default_factory=list, sa_column=Column(JSON))
    remote_updated_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)
    )
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))

    def __repr__(self):
        return f"<MirroredPullRequest(repo={self.repo_name}, number={self.number}, status={self.status})>"
