from sqlalchemy.ext.asyncio import AsyncSession
from app.models.support.activity_models import UserActivity
from app.constants.activity_templates import ACTIVITY_TEMPLATES
from app.constants.activity_codes import ActivityCode


async def emit_activity(
    db: AsyncSession,
    *,
    actor,
    code: ActivityCode,
    **context,
):
    """Queue an audit message on ``db``; it is written by the caller's commit."""
    template = ACTIVITY_TEMPLATES.get(code)
    if not template:
        raise ValueError(f"No activity template for code {code}")

    context.setdefault("actor_role", actor.role.capitalize())
    context.setdefault("actor_email", actor.username)

    try:
        message = template.format(**context)
    except KeyError as e:
        raise ValueError(
            f"Missing activity context key: {e.args[0]} for {code}"
        )

    db.add(
        UserActivity(
            user_id=actor.id,
            username_snapshot=actor.username,
            code=code.value,
            message=message,
        )
    )
