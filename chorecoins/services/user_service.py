from sqlalchemy.orm import Session
from sqlalchemy import select
import logging
from ..core.errors import PreconditionError, ValidationError
from ..models.user import User

logger = logging.getLogger(__name__)


def create_user(db: Session, *, email: str, display_name: str | None = None) -> User:
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if get_by_email(db, email):
        raise PreconditionError(f"User with email {email} already exists", code="EMAIL_TAKEN")
    try:
        logger.info(f"Creating user: email={email}, display_name={display_name}")
        user = User(email=email, display_name=display_name)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"User created successfully: id={user.id}, email={user.email}")
        return user
    except Exception as e:
        logger.error(f"Error creating user with email {email}: {str(e)}", exc_info=True)
        db.rollback()
        raise


def get_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()
