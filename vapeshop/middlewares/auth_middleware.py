from typing import List, Optional
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from vapeshop.auth.constants import ACCESS_COOKIE_NAME
from vapeshop.auth.utils import ACCESS_TOKEN_TYPE, decode_token
from vapeshop.common.utils import error_response
from vapeshop.middlewares.constants import logger
from vapeshop.user.repository import UserDirectory


def extract_access_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(ACCESS_COOKIE_NAME)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, session_maker, paths: List[str]):
        super().__init__(app)
        self.session_maker = session_maker
        self.paths = paths  # public path prefixes

    async def dispatch(self, request: Request, call_next):

        if any(request.url.path.startswith(p) for p in self.paths):
            return await call_next(request)

        logger.info("auth.middleware.attempt", extra={
            "path": request.url.path,
            "method": request.method
        })

        token = extract_access_token(request)
        claims = decode_token(token, expected_type=ACCESS_TOKEN_TYPE) if token else None
        if not claims:
            logger.warning("auth.middleware.failed", extra={
                "reason": "missing_token" if not token else "invalid_or_expired_token",
                "path": request.url.path,
                "method": request.method
            })
            return error_response("Authentication required", status.HTTP_401_UNAUTHORIZED,
                                  errors=["Missing or invalid access token"])

        user_pid = claims.get("sub")
        async with self.session_maker() as session:
            user = await UserDirectory(session).by_public_id(user_pid)

        if not user or not user.is_active:
            logger.warning("auth.middleware.user_not_found", extra={
                "user_public_id": user_pid,
                "path": request.url.path
            })
            return error_response("User not found or inactive", status.HTTP_403_FORBIDDEN,
                                  errors=["User unidentified and not authorized"])

        request.state.user = user
        request.state.user_public_id = user_pid
        request.state.token_claims = claims

        logger.info("auth.middleware.success", extra={
            "user_public_id": user_pid,
            "path": request.url.path
        })

        return await call_next(request)
