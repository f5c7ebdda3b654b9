from core.errors import AccessDeniedError
from core.events import E, log_event
from core.log import get_logger

logger = get_logger(__name__)


def check_ownership(resource_owner_id: str, requester_id: str, action: str = "访问该资源") -> None:
    if str(resource_owner_id or "") != str(requester_id or "") or not str(requester_id or ""):
        log_event(
            logger,
            E.FEEDBACK_ACCESS_DENIED,
            level="warning",
            requester=requester_id,
            owner=resource_owner_id,
            action=action,
        )
        raise AccessDeniedError(action)
