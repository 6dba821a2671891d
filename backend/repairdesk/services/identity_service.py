import logging
from dataclasses import dataclass, field
from typing import Any

from firebase_admin import auth

from repairdesk.core.firebase import FirebaseNotConfigured, get_firebase_app

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    uid: str
    email: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


class IdentityService:
    """Delegates account operations to Firebase Authentication."""

    def create_user(self, *, email: str, password: str, display_name: str) -> str:
        record = auth.create_user(
            email=email,
            password=password,
            display_name=display_name,
            app=get_firebase_app(),
        )
        logger.info("Created auth user %s", record.uid)
        return record.uid

    def delete_user(self, uid: str) -> None:
        auth.delete_user(uid, app=get_firebase_app())
        logger.info("Deleted auth user %s", uid)

    def revoke_refresh_tokens(self, uid: str) -> None:
        auth.revoke_refresh_tokens(uid, app=get_firebase_app())
        logger.info("Revoked refresh tokens of %s", uid)

    def verify_id_token(self, id_token: str) -> CallerIdentity | None:
        try:
            claims = auth.verify_id_token(id_token, app=get_firebase_app())
        except (auth.InvalidIdTokenError, ValueError):
            logger.info("Rejected invalid ID token")
            return None
        except (auth.CertificateFetchError, auth.UserDisabledError, FirebaseNotConfigured) as exc:
            logger.warning("Could not verify ID token: %s", exc)
            return None
        return CallerIdentity(uid=claims["uid"], email=claims.get("email"), claims=claims)
