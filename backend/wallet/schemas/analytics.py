from pydantic import BaseModel
from datetime import datetime


class AnalyticsEventOut(BaseModel):
    id: int
    name: str
    parameters: dict[str, str]
    created_at: datetime

    class Config:
        from_attributes = True
