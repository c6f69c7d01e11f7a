from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from pdfstore.utils.clock import timestamp_type, utcnow


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True)
    role: str = Field(default="user")  # user | author | admin
    can_login: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
