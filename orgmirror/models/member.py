from typing import Optional

from sqlmodel import Field
from sqlalchemy import Column, JSON
from orgmirror.models.base_model import BaseModel


class OrgMember(BaseModel, table=True):
    __tablename__ = "org_members"

    installation_id: int = Field(primary_key=True)
    login: str = Field(primary_key=True)
    member_id: Optional[int] = None
    email: Optional[str] = None
    name: Optional[str] = None
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
