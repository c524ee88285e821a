# Overview: Resolve a user into the single capability value ledger operations receive.

"""
Recorder capability

WHY: Business admins, shop admins, accountants and collectors all perform
"the same" payment/refund actions with different confirmation behaviour.
Instead of branching on role strings at every call site, the role and the
per-user flag are resolved once here into a RecorderCapability that the
ledger services take as input.

RULES:
- BUSINESS_ADMIN: always confirms
- SHOP_ADMIN, ACCOUNTANT: confirm only when can_confirm_payments is set
- DEBT_COLLECTOR, SALES_STAFF: never confirm
- Inactive users: never confirm
"""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import CONFIRM_CAPABLE_ROLES, ROLE_BUSINESS_ADMIN
from ..errors import NotFoundError, PermissionDeniedError
from ..models import User


@dataclass(frozen=True)
class RecorderCapability:
    user_id: int | None
    role: str
    can_auto_confirm: bool
    business_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role,
            "can_auto_confirm": self.can_auto_confirm,
            "business_id": self.business_id,
        }


def can_confirm(user: User) -> bool:
    if not user.is_active:
        return False
    if user.role == ROLE_BUSINESS_ADMIN:
        return True
    return user.role in CONFIRM_CAPABLE_ROLES and bool(user.can_confirm_payments)


def capability_for(user: User) -> RecorderCapability:
    return RecorderCapability(
        user_id=user.id,
        role=user.role,
        can_auto_confirm=can_confirm(user),
        business_id=user.business_id,
    )


def require_confirm_authority(actor: RecorderCapability, action: str = "confirm payments") -> None:
    """Fail closed: raise unless the actor holds confirm authority."""
    if not actor.can_auto_confirm:
        raise PermissionDeniedError(
            f"{actor.role} is not allowed to {action}",
            details={"user_id": actor.user_id, "role": actor.role},
        )


def require_same_business(actor: RecorderCapability, business_id: int) -> None:
    """Tenant guard: an actor never touches another business's ledger."""
    if actor.business_id is not None and actor.business_id != business_id:
        raise NotFoundError("Record not found")
