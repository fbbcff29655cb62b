# rate_limiter.py
import logging
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from jose import jwt, JWTError
from config import SECRET_KEY, ALGORITHM, RATE_LIMIT_ENABLED, AUTH_USER_RATE_LIMIT, ANON_USER_RATE_LIMIT

logger = logging.getLogger(__name__)

def get_request_identifier(request: Request) -> str:
    """
    Identifies the requester. If a valid JWT is present, it uses the user id.
    Otherwise, it falls back to the client's IP address.
    """
    auth_header = request.headers.get("authorization")
    if auth_header:
        try:
            scheme, token = auth_header.split()
            if scheme.lower() == "bearer" and token:
                payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
                user_id = payload.get("user_id") or payload.get("sub")
                if user_id:
                    # Store this key on the request state so the header middleware can use it later
                    request.state.rate_limit_key = f"user:{user_id}"
                    return f"user:{user_id}"
        except (JWTError, ValueError):
            # Invalid or malformed token: rate limit as anonymous
            pass

    ip_address = get_remote_address(request)
    request.state.rate_limit_key = f"ip:{ip_address}"
    return f"ip:{ip_address}"

limiter = Limiter(key_func=get_request_identifier, strategy="moving-window", enabled=RATE_LIMIT_ENABLED)

def get_dynamic_rate_limit(key: str) -> str:
    """
    Returns the appropriate rate limit string based on the identifier.
    'key' will be something like "user:some_uuid" or "ip:127.0.0.1".
    """
    if key.startswith("user:"):
        return AUTH_USER_RATE_LIMIT
    else: # It's an IP address
        return ANON_USER_RATE_LIMIT
