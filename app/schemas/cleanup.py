from pydantic import BaseModel, Field


class CleanupRequest(BaseModel):
    min_age_days: float = Field(default=0, ge=0)  # 0 = no age filter
