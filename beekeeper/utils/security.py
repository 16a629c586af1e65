from datetime import datetime, timedelta, timezone
from typing import Optional

import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from beekeeper.models.user import User
from beekeeper.schemas.user import TokenData
from beekeeper.utils.exceptions import CREDENTIALS_EXCEPTION, USER_NOT_FOUND_EXCEPTION
from database import get_db
from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error off: public routes accept anonymous callers
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)
logger = logging.getLogger(__name__)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=int(ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str):
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise CREDENTIALS_EXCEPTION
        return TokenData(user_id=int(user_id))
    except (jwt.PyJWTError, ValueError):
        raise CREDENTIALS_EXCEPTION


async def authenticate_user(db: AsyncSession, username: str, password: str) -> Optional[User]:
    user = await db.scalar(select(User).filter(User.username == username))
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


async def get_current_user(
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Resolve the bearer token to a user. No token means an anonymous caller (None)."""
    if not token:
        return None
    token_data = decode_access_token(token)
    user = await db.get(User, token_data.user_id)
    if user is None:
        raise USER_NOT_FOUND_EXCEPTION
    if not user.is_active:
        logger.warning(f"Inactive user {user.id} presented a token")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user
