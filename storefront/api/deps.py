# storefront/api/deps.py
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.enums import UserRole
from storefront.repos.user_repo import UserRepo
from storefront.services.guest_cart_store import GuestCartStore
from storefront.services.notification_service import NotificationService


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


def get_identity(
    x_user_id: int | None = Header(None),
    db: Session = Depends(get_db),
) -> Identity:
    """Tozsamosc z warstwy sesji (X-User-Id), rola z bazy."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = UserRepo(db).get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    return Identity(user_id=user.id, role=UserRole(user.role))


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity


def get_notification_service() -> NotificationService:
    return NotificationService()


#jeden klient Redis (i pula polaczen) na proces
guest_cart_store = GuestCartStore()


def get_guest_cart_store() -> GuestCartStore:
    return guest_cart_store
