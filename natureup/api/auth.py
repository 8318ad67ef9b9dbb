from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from natureup.core.security import decode_identity_token, verification_enabled

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if not verification_enabled():
        return None
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise credentials_exception
    try:
        return decode_identity_token(credentials.credentials)
    except JWTError as exc:
        raise credentials_exception from exc


def ensure_subject_matches(subject: Optional[str], user_id: str) -> None:
    if subject is not None and subject != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token subject does not match user_id")
