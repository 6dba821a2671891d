import logging
import re
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from itertools import chain

from sqlalchemy.orm import Session

from repairdesk.models.enums import PushChannel, UserRole
from repairdesk.models.user import User
from repairdesk.repositories import repair_repo, user_repo

logger = logging.getLogger(__name__)

_APNS_TOKEN = re.compile(r"[0-9a-fA-F]{64}")


def classify(token: str) -> PushChannel:
    """APNs device tokens are 64 hex characters; anything else goes through FCM."""
    if _APNS_TOKEN.fullmatch(token):
        return PushChannel.APNS
    return PushChannel.FCM


def partition(tokens: Iterable[str]) -> tuple[list[str], list[str]]:
    fcm_tokens: list[str] = []
    apns_tokens: list[str] = []
    for token in tokens:
        if classify(token) is PushChannel.APNS:
            apns_tokens.append(token)
        else:
            fcm_tokens.append(token)
    return fcm_tokens, apns_tokens


def tokens_from_user(user: User) -> list[str]:
    # The list field wins when it holds anything; the legacy field is the fallback.
    if isinstance(user.fcm_tokens, list) and user.fcm_tokens:
        return [t for t in user.fcm_tokens if isinstance(t, str) and t]
    if isinstance(user.fcm_token, str) and user.fcm_token:
        return [user.fcm_token]
    return []


def unique_tokens(tokens: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for token in tokens:
        if token in seen:
            continue
        seen.add(token)
        result.append(token)
    return result


class TokenResolver:
    """Turns a business or a phone number into the push tokens to target.

    Every lookup opens its own short-lived session from ``session_factory`` so
    per-mobile lookups can run on a bounded thread pool.
    """

    def __init__(self, session_factory: Callable[[], Session], *, max_workers: int = 8) -> None:
        self._session_factory = session_factory
        self._max_workers = max_workers

    def customer_mobiles(self, business_id: str) -> list[str]:
        with self._session_factory() as db:
            mobiles = repair_repo.list_customer_mobiles(db, business_id)
        logger.info("Business %s has %d distinct customer mobiles", business_id, len(mobiles))
        return mobiles

    def resolve_by_business(self, business_id: str) -> list[str]:
        return self.tokens_for_mobiles(self.customer_mobiles(business_id), role=UserRole.USER)

    def resolve_by_mobile(self, mobile: str) -> list[str]:
        with self._session_factory() as db:
            users = user_repo.list_by_mobile(db, mobile)
            tokens = unique_tokens(chain.from_iterable(tokens_from_user(u) for u in users))
        logger.info("Mobile %s matched %d users, %d tokens", mobile, len(users), len(tokens))
        return tokens

    def tokens_for_mobiles(self, mobiles: Iterable[str], role: UserRole | None = UserRole.USER) -> list[str]:
        mobiles = list(mobiles)
        if self._max_workers <= 1 or len(mobiles) <= 1:
            per_mobile = [self._lookup(mobile, role) for mobile in mobiles]
        else:
            workers = min(self._max_workers, len(mobiles))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="token-lookup") as pool:
                per_mobile = list(pool.map(lambda mobile: self._lookup(mobile, role), mobiles))
        return unique_tokens(chain.from_iterable(per_mobile))

    def _lookup(self, mobile: str, role: UserRole | None) -> list[str]:
        try:
            with self._session_factory() as db:
                users = user_repo.list_by_mobile(db, mobile, role=role)
                tokens = list(chain.from_iterable(tokens_from_user(u) for u in users))
        except Exception:
            logger.exception("Token lookup failed for mobile %s, skipping it", mobile)
            return []
        if not users:
            logger.info("No user found for mobile %s", mobile)
        return tokens
