# app/schemas/auth/activity_schemas.py

from pydantic import BaseModel
from typing import List, Literal, Optional
from datetime import datetime


class UserActivityFilters(BaseModel):
    user_id: Optional[int] = None
    username: Optional[str] = None
    code: Optional[str] = None
    # Matched against the message, e.g. a document ref number
    search: Optional[str] = None

    page: int = 1
    page_size: int = 20

    sort_by: Literal["created_at", "username"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class UserActivityOut(BaseModel):
    id: int
    user_id: Optional[int]
    username_snapshot: str
    code: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class UserActivityListData(BaseModel):
    total: int
    items: List[UserActivityOut]
