from fastapi import APIRouter, Depends

from repairdesk.api.deps import get_current_caller, get_identity_service
from repairdesk.schemas.staff import SuccessResponse
from repairdesk.services import staff_service
from repairdesk.services.identity_service import CallerIdentity, IdentityService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-out-all", response_model=SuccessResponse, response_model_exclude_none=True)
def sign_out_from_all_devices(
    identity: IdentityService = Depends(get_identity_service),
    caller: CallerIdentity | None = Depends(get_current_caller),
):
    return staff_service.sign_out_from_all_devices(identity, caller)
