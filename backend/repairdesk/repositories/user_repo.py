from sqlalchemy.orm import Session
from sqlalchemy import select

from repairdesk.models.enums import UserRole
from repairdesk.models.user import User

def normalize_email(email: str) -> str:
    return email.lower().strip()

def list_by_mobile(db: Session, mobile: str, role: UserRole | None = None) -> list[User]:
    stmt = select(User).where(User.mobile == mobile)
    if role is not None:
        stmt = stmt.where(User.role == role)
    return list(db.scalars(stmt.order_by(User.created_at, User.uid)).all())

def create_staff(
    db: Session,
    *,
    uid: str,
    email: str | None,
    name: str | None,
    mobile: str | None,
    permissions: list[str],
    business_id: str | None,
) -> User:
    user = User(
        uid=uid,
        email=normalize_email(email) if email else None,
        name=name.strip() if name else None,
        mobile=mobile,
        permissions=list(permissions),
        role=UserRole.STAFF,
        business_id=business_id,
        active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def delete_user(db: Session, uid: str) -> bool:
    user = db.get(User, uid)
    if user is None:
        return False
    db.delete(user)
    db.commit()
    return True
