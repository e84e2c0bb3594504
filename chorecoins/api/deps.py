from typing import Generator, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
import jwt
from ..db.session import SessionLocal
from ..models.user import User
from ..services.household_service import ensure_admin, ensure_member
from ..services.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_member(
    household_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
) -> User:
    return ensure_member(db, user_id=current.id, household_id=household_id)


def require_admin(
    household_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
) -> User:
    return ensure_admin(db, user_id=current.id, household_id=household_id)
