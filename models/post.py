from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Comment(BaseModel):
    user: str
    text: str
    created_at: str = Field(default_factory=now_iso)


class Post(BaseModel):
    id: Optional[str] = None
    author: str
    text: str = ""
    image: Optional[str] = None
    likes: List[str] = []
    comments: List[Comment] = []
    is_deleted: bool = False
    deleted_at: Optional[str] = None
    created_at: str = Field(default_factory=now_iso)


class CommentRequest(BaseModel):
    # any JSON value, the handler checks for a string
    text: Any = None


class PostStats(BaseModel):
    totalPosts: int
    deletedPosts: int
    activePosts: int
    totalLikes: int
    deletedPercentage: float
    avgLikesPerPost: float

    @classmethod
    def from_counts(cls, total: int, deleted: int, active: int, likes: int) -> "PostStats":
        return cls(
            totalPosts=total,
            deletedPosts=deleted,
            activePosts=active,
            totalLikes=likes,
            deletedPercentage=round(deleted / total * 100, 1) if total > 0 else 0,
            avgLikesPerPost=round(likes / active, 2) if active > 0 else 0,
        )
