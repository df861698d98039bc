# fieldlog/core/security.py
# Handles password hashing, JWTs, and all role-checking dependencies.
# Roles come from the stored engineer profile of the logged-in account, never from the email address.
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone

from fieldlog.db import models, session
from fieldlog.core.config import settings
from fieldlog.core.errors import AccountDeactivated, ProfileMissing
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.schemas import token as token_schema
from fieldlog.services import store

# --- Password Hashing ---
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
def verify_password(plain: str, hashed: str) -> bool: return pwd_context.verify(plain, hashed)
def get_password_hash(pwd: str) -> str: return pwd_context.hash(pwd)

# --- JWT Creation ---
def create_access_token(data: dict, expires_minutes: int | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

# --- Role-Checking Dependencies ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

def _user_from_token(token: str, db: Session) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise credentials_exception
        token_data = token_schema.TokenData(email=email)
    except JWTError:
        raise credentials_exception

    user = db.query(models.User).filter(models.User.email == token_data.email).first()
    if user is None:
        raise credentials_exception
    return user

def _active_engineer(user: models.User, db: Session) -> engineer_schema.Engineer:
    engineer = store.get_engineer_for_user(db, user.id)
    if engineer is None:
        raise ProfileMissing("Access denied. You need to be registered as an engineer or admin to use this system.")
    if not engineer.is_active:
        raise AccountDeactivated("Your account has been deactivated. Please contact your administrator.")
    return engineer

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(session.get_db)) -> models.User:
    return _user_from_token(token, db)

def get_current_engineer(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(session.get_db),
) -> engineer_schema.Engineer:
    return _active_engineer(current_user, db)

def get_streaming_engineer(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(session.get_db, scope="function"),
) -> engineer_schema.Engineer:
    """
    For long-lived responses. The session is closed as soon as the endpoint
    returns, before the body starts streaming.
    """
    return _active_engineer(_user_from_token(token, db), db)

def get_current_admin(engineer: engineer_schema.Engineer = Depends(get_current_engineer)):
    """Admins and limited admins: read access to the console and messaging."""
    if engineer.role not in engineer_schema.ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions for this resource")
    return engineer

def get_current_full_admin(engineer: engineer_schema.Engineer = Depends(get_current_engineer)):
    """Full admins only: account, category and activity management."""
    if engineer.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Requires admin role")
    return engineer
