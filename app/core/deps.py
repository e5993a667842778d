from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import decode_jwt
from app.db.session import get_db
from app.models.user import User

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")
    try:
        claims = decode_jwt(creds.credentials, settings.JWT_SECRET)
        user_id = UUID(str(claims.get("sub") or ""))
    except Exception:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")
    return user

def require_role(*roles: str):
    def _inner(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail=f"User role {user.role} is not authorized to access this route")
        return user
    return _inner
