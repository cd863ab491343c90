from sqlmodel import Field
from sqlalchemy import Column, JSON
from orgmirror.models.base_model import BaseModel


class PullRequestAnalysisRecord(BaseModel, table=True):
    __tablename__ = "pull_request_analyses"

    installation_id: int = Field(primary_key=True)
    repo_name: str = Field(primary_key=True)
    pr_number: int = Field(primary_key=True)
    analysis: dict = Field(default_factory=dict, sa_column=Column(JSON))
