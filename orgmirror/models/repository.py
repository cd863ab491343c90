from datetime import datetime
from typing import Optional

from sqlmodel import Field
from sqlalchemy import Column, DateTime, JSON
from orgmirror.models.base_model import BaseModel


class MirroredRepository(BaseModel, table=True):
    __tablename__ = "mirrored_repositories"

    installation_id: int = Field(primary_key=True)
    name: str = Field(primary_key=True)
    repo_id: Optional[int] = None
    full_name: str
    owner: Optional[str] = None
    primary_language: Optional[str] = None
    languages: list = Field(default_factory=list, sa_column=Column(JSON))
    color: Optional[str] = None
    remote_updated_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)
    )
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))

    def __repr__(self):
        return f"<MirroredRepository(installation_id={self.installation_id}, full_name={self.full_name}, color={self.color})>"
