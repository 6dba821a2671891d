import logging

from sqlalchemy.orm import Session

from repairdesk.core.errors import InternalError, Unauthenticated
from repairdesk.repositories import user_repo
from repairdesk.schemas.staff import StaffCreateRequest
from repairdesk.services.identity_service import CallerIdentity, IdentityService

logger = logging.getLogger(__name__)


def create_staff_user(
    db: Session,
    identity: IdentityService,
    caller: CallerIdentity | None,
    payload: StaffCreateRequest,
) -> str:
    if caller is None:
        raise Unauthenticated("Request not authenticated")
    try:
        uid = identity.create_user(email=payload.email, password=payload.password, display_name=payload.name)
        user_repo.create_staff(
            db,
            uid=uid,
            email=payload.email,
            name=payload.name,
            mobile=payload.mobile,
            permissions=payload.permissions,
            business_id=payload.business_id,
        )
    except Exception as exc:
        db.rollback()
        logger.exception("Creating staff user %s failed", payload.email)
        raise InternalError(str(exc)) from exc
    logger.info("Staff user %s created by %s", uid, caller.uid)
    return uid


def delete_staff_user(
    db: Session,
    identity: IdentityService,
    caller: CallerIdentity | None,
    staff_uid: str,
) -> None:
    if caller is None:
        raise Unauthenticated("Request not authenticated")
    try:
        identity.delete_user(staff_uid)
        user_repo.delete_user(db, staff_uid)
    except Exception as exc:
        db.rollback()
        logger.exception("Deleting staff user %s failed", staff_uid)
        raise InternalError(str(exc)) from exc
    logger.info("Staff user %s deleted by %s", staff_uid, caller.uid)


def sign_out_from_all_devices(identity: IdentityService, caller: CallerIdentity | None) -> dict:
    if caller is None:
        return {"success": False, "error": "Request not authenticated"}
    try:
        identity.revoke_refresh_tokens(caller.uid)
    except Exception as exc:
        logger.exception("Sign-out from all devices failed for %s", caller.uid)
        return {"success": False, "error": str(exc) or "Failed to sign out from all devices."}
    return {"success": True, "message": "User signed out from all devices."}
