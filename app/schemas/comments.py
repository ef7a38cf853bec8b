from pydantic import BaseModel
from typing import Optional


class CommentCreate(BaseModel):
    post_id: int
    content: str
    parent_id: Optional[int] = None  # set for replies


class CommentUpdate(BaseModel):
    content: str
