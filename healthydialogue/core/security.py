from datetime import timedelta
from typing import Any, Dict, Optional, Union
from jose import jwt
from healthydialogue.core.config import settings
from healthydialogue.utils.timezone import utcnow_aware

# Export the algorithm constant for use in other modules
ALGORITHM = settings.ALGORITHM


def create_access_token(subject: Union[str, Any], expires_delta: timedelta = None) -> str:
    if expires_delta:
        expire = utcnow_aware() + expires_delta
    else:
        expire = utcnow_aware() + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)

    to_encode = {"exp": expire, "sub": str(subject), "is_doctor": True}
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a doctor token. Raises ``jose.JWTError`` on a bad
    signature, expiry or malformed token.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])


def verify_api_key(api_key: Optional[str]) -> bool:
    """
    Verify API key against configured valid keys
    """
    if not api_key:
        return False

    valid_keys = settings.VALID_API_KEYS
    if isinstance(valid_keys, str):
        valid_keys = [valid_keys]

    return api_key in valid_keys
