from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from repairdesk.api.deps import get_current_caller, get_identity_service, http_error
from repairdesk.core.errors import ServiceError
from repairdesk.db.deps import get_db
from repairdesk.schemas.staff import StaffCreateRequest, SuccessResponse
from repairdesk.services import staff_service
from repairdesk.services.identity_service import CallerIdentity, IdentityService


router = APIRouter(prefix="/staff", tags=["staff"])


@router.post(
    "",
    response_model=SuccessResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
def create_staff_user(
    payload: StaffCreateRequest,
    db: Session = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service),
    caller: CallerIdentity | None = Depends(get_current_caller),
):
    try:
        staff_service.create_staff_user(db, identity, caller, payload)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return SuccessResponse()


@router.delete("/{staff_uid}", response_model=SuccessResponse, response_model_exclude_none=True)
def delete_staff_user(
    staff_uid: str,
    db: Session = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service),
    caller: CallerIdentity | None = Depends(get_current_caller),
):
    try:
        staff_service.delete_staff_user(db, identity, caller, staff_uid)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return SuccessResponse()
