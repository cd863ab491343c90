from sqlmodel import Field
from sqlalchemy import Column, JSON
from orgmirror.models.base_model import BaseModel


class Installation(BaseModel, table=True):
    __tablename__ = "installations"

    installation_id: int = Field(
        primary_key=True, sa_column_kwargs={"autoincrement": False}
    )
    owner_login: str = Field(index=True)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))

    def __repr__(self):
        return f"<Installation(installation_id={self.installation_id}, owner_login={self.owner_login})>"
