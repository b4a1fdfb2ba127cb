import logging

from app.constants.capabilities import ROLE_CAPABILITIES
from app.core.exceptions import PermissionDenied
from app.schemas.auth.auth_schemas import Actor

logger = logging.getLogger(__name__)


def can_perform(actor: Actor, action: str) -> bool:
    granted = ROLE_CAPABILITIES.get(actor.role.lower(), frozenset())
    if "*" in granted or action in granted:
        return True

    area = action.split(".", 1)[0]
    return f"{area}.*" in granted


def ensure_capability(actor: Actor, action: str) -> None:
    if not can_perform(actor, action):
        logger.warning(
            "Capability refused",
            extra={"actor_id": actor.id, "role": actor.role, "action": action},
        )
        raise PermissionDenied(action)
