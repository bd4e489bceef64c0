from fastapi import Depends, HTTPException, Request, status
from vapeshop.schema.full_schema import UserRole


def current_user(request: Request):
    user = getattr(request.state, "user", None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated")
    return user


def require_role(*roles: UserRole):
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    def _check(user=Depends(current_user)):
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _check
