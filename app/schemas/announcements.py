from pydantic import BaseModel
from typing import Optional


class AnnouncementCreate(BaseModel):
    title: str
    content: str
    image: Optional[str] = None
    image_public_id: Optional[str] = None
    target_audience: str = "all"
