from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.schemas.auth.activity_schemas import UserActivityFilters, UserActivityListData
from app.services.auth.activity_service import list_user_activities
from app.services.auth.capability_service import ensure_capability
from app.utils.get_user import get_current_actor
from app.utils.response import success_response, APIResponse
from app.utils.logger import get_logger

router = APIRouter(prefix="/activities", tags=["User Activities"])
logger = get_logger(__name__)


@router.get("/", response_model=APIResponse[UserActivityListData])
async def list_user_activities_api(
    db: AsyncSession = Depends(get_db),
    actor=Depends(get_current_actor),
    user_id: Optional[int] = Query(None),
    username: Optional[str] = Query(None),
    code: Optional[str] = Query(None, description="Activity code, e.g. SEND_DOCUMENT"),
    search: Optional[str] = Query(None, description="Text in the message, e.g. a ref number"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort_by: Literal["created_at", "username"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
):
    ensure_capability(actor, "activity.view")

    filters = UserActivityFilters(
        user_id=user_id,
        username=username,
        code=code,
        search=search,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    logger.info(
        "List user activities requested",
        extra=filters.model_dump(exclude_none=True),
    )

    result = await list_user_activities(db=db, filters=filters)

    return success_response(
        "User activities fetched successfully",
        result,
    )
