from typing import Literal

from pydantic import BaseModel, Field

from models.post import now_iso


class Notification(BaseModel):
    to: str
    sender: str = Field(serialization_alias="from")
    type: Literal["like", "comment"]
    post: str
    read: bool = False
    created_at: str = Field(default_factory=now_iso)
