from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# auto_error is off: some handlers answer a missing caller with a body, not a 401.
bearer_scheme = HTTPBearer(auto_error=False)

def get_bearer_token(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    if creds is None or not creds.scheme or creds.scheme.lower() != "bearer":
        return None
    return creds.credentials or None
