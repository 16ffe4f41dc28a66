from __future__ import annotations

import base64
import datetime as dt
import hashlib
import hmac
import os
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models import ApiToken, User

bearer_scheme = HTTPBearer(auto_error=False)


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _ensure_aware(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def generate_token_value() -> str:
    raw = os.urandom(32)
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def token_hash(token: str) -> str:
    digest = hmac.new(settings.token_secret.encode(), msg=token.encode(), digestmod=hashlib.sha256)
    return digest.hexdigest()


def create_token(db: Session, user: User, ttl_minutes: Optional[int] = None) -> Tuple[ApiToken, str]:
    token_value = generate_token_value()
    ttl = settings.token_ttl_minutes if ttl_minutes is None else ttl_minutes
    expires_at = _now() + dt.timedelta(minutes=ttl) if ttl else None
    token = ApiToken(user_id=user.id, token_hash=token_hash(token_value), expires_at=expires_at)
    db.add(token)
    db.commit()
    db.refresh(token)
    return token, token_value


def verify_token(db: Session, token_value: str) -> Optional[ApiToken]:
    token = db.query(ApiToken).filter(ApiToken.token_hash == token_hash(token_value)).one_or_none()
    if not token:
        return None
    expires_at = _ensure_aware(token.expires_at)
    if expires_at and expires_at < _now():
        return None
    return token


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = verify_token(db, credentials.credentials)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token invalid or expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token.last_used_at = _now()
    db.add(token)
    db.commit()
    return token.user
