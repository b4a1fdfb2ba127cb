# app/services/auth/activity_service.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc, asc

from app.models.support.activity_models import UserActivity
from app.schemas.auth.activity_schemas import (
    UserActivityOut,
    UserActivityFilters,
    UserActivityListData,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_SORT_FIELDS = {
    "created_at": UserActivity.created_at,
    "username": UserActivity.username_snapshot,
}


async def list_user_activities(
    *,
    db: AsyncSession,
    filters: UserActivityFilters,
) -> UserActivityListData:
    clauses = []

    if filters.user_id:
        clauses.append(UserActivity.user_id == filters.user_id)

    if filters.username:
        clauses.append(UserActivity.username_snapshot.ilike(f"%{filters.username}%"))

    if filters.code:
        clauses.append(UserActivity.code == filters.code.upper())

    if filters.search:
        clauses.append(UserActivity.message.ilike(f"%{filters.search.strip()}%"))

    order_fn = desc if filters.sort_order == "desc" else asc
    sort_column = ALLOWED_SORT_FIELDS[filters.sort_by]

    total = await db.scalar(select(func.count(UserActivity.id)).where(*clauses))
    result = await db.execute(
        select(UserActivity)
        .where(*clauses)
        .order_by(order_fn(sort_column), order_fn(UserActivity.id))
        .limit(filters.page_size)
        .offset((filters.page - 1) * filters.page_size)
    )

    activities = result.scalars().all()

    logger.debug(
        "User activities fetched",
        extra={
            "total": total,
            "page": filters.page,
            "page_size": filters.page_size,
        },
    )

    return UserActivityListData(
        total=total or 0,
        items=[UserActivityOut.model_validate(a) for a in activities],
    )
