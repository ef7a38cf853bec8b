from pydantic import BaseModel
from typing import Optional


class PostCreate(BaseModel):
    title: str
    content: str
    featured_image: Optional[str] = None
    featured_image_public_id: Optional[str] = None
    status: Optional[str] = "draft"


class PostUpdate(BaseModel):
    """Only the fields sent are applied; `status` is how authors submit."""
    title: Optional[str] = None
    content: Optional[str] = None
    featured_image: Optional[str] = None
    featured_image_public_id: Optional[str] = None
    status: Optional[str] = None


class ReviewDecision(BaseModel):
    reason: Optional[str] = None
