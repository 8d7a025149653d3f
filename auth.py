from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from database import get_db
from exceptions import ForbiddenAccess, InvalidToken, MissingToken
from models_orm import UserORM

# SECRET_KEY should be in env; the fallback only suits local development
import os
SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_key_123")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))


import bcrypt
import logging

logger = logging.getLogger("coachlink")

def verify_password(plain_password, hashed_password):
    # bcrypt requires bytes for both
    pwd_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)

def get_password_hash(password):
    # bcrypt requires bytes, returns bytes. We store as string.
    pwd_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode('utf-8')

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)

async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    if not token:
        logger.debug("AUTH: No bearer token on request")
        raise MissingToken()

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            logger.debug("AUTH: Token missing 'sub'")
            raise InvalidToken()
    except JWTError as e:
        logger.debug(f"AUTH: JWT validation error: {e}")
        raise InvalidToken()

    user = db.query(UserORM).filter(UserORM.id == user_id, UserORM.is_active == True).first()
    if user is None:
        # Same error as a bad token so deleted accounts look like expired sessions
        logger.debug(f"AUTH: User {user_id} not found")
        raise InvalidToken()

    return user


def require_roles(*roles: str):
    """Dependency factory: the current user must hold one of the given roles."""
    async def _dependency(current_user: UserORM = Depends(get_current_user)):
        if current_user.role not in roles:
            raise ForbiddenAccess()
        return current_user
    return _dependency
