from dataclasses import dataclass
from enum import Enum
import hmac
import logging

from fastapi import Header

from .config import settings
from .errors import InvalidRequestError, PermissionDeniedError

logger = logging.getLogger(__name__)


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    SALES = "sales"
    MOVER = "mover"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Caller identity as resolved by the external auth layer."""

    role: ActorRole
    user_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in (ActorRole.ADMIN, ActorRole.SYSTEM)

    @property
    def label(self) -> str:
        if self.user_id is None:
            return self.role.value
        return f"{self.role.value}:{self.user_id}"


def get_actor(
    x_actor_role: str = Header(default=ActorRole.CUSTOMER.value),
    x_actor_id: int | None = Header(default=None),
) -> Actor:
    try:
        role = ActorRole(x_actor_role)
    except ValueError:
        raise InvalidRequestError(f"Unknown actor role: {x_actor_role}.") from None
    if role == ActorRole.SYSTEM:
        raise PermissionDeniedError("The system role cannot be claimed by callers.")
    return Actor(role=role, user_id=x_actor_id)


def require_roles(actor: Actor, *roles: ActorRole) -> None:
    if actor.role not in roles and not actor.is_admin:
        raise PermissionDeniedError("This action is not permitted for your role.")


def require_webhook_secret(
    x_webhook_secret: str | None = Header(default=None),
) -> None:
    """Accept a payment webhook only when it carries the shared secret."""
    expected = settings.payment_webhook_secret
    if not expected:
        logger.warning("Payment webhook refused: no webhook secret is configured")
        raise PermissionDeniedError("Payment webhooks are not enabled.")
    if x_webhook_secret is None or not hmac.compare_digest(
        x_webhook_secret.encode("utf-8"), expected.encode("utf-8")
    ):
        raise PermissionDeniedError("Invalid webhook secret.")
