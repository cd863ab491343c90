from typing import Optional

from sqlmodel import Field
from sqlalchemy import Column, JSON
from orgmirror.models.base_model import BaseModel


class RepositoryBranches(BaseModel, table=True):
    __tablename__ = "repository_branches"

    installation_id: int = Field(primary_key=True)
    repo_name: str = Field(primary_key=True)
    full_name: Optional[str] = None
    repo_id: Optional[int] = None
    branches: list = Field(default_factory=list, sa_column=Column(JSON))
