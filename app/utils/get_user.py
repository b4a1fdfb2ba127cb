from fastapi import Header, HTTPException, Request, status

from app.core.security import decode_access_token
from app.schemas.auth.auth_schemas import Actor
from app.utils.logger import get_logger

logger = get_logger("auth.guard")


async def get_current_actor(
    request: Request,
    authorization: str = Header(...),
) -> Actor:
    if not authorization.startswith("Bearer "):
        logger.warning("Missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )

    token = authorization.split("Bearer ")[1].strip()
    payload = decode_access_token(token)

    try:
        actor = Actor(
            id=int(payload["sub"]),
            username=payload["username"],
            role=payload["role"],
        )
    except (KeyError, ValueError):
        logger.warning("Token is missing actor claims")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token claims",
        )

    request.state.user = actor
    return actor
