from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockroom.auth import Principal, Role
from stockroom.config import settings
from stockroom.db import SessionLocal
from stockroom.models import ApiToken, PrincipalRole


AUTH_EXEMPT_PATHS = {'/health', '/docs', '/openapi.json'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _token_expiry() -> datetime:
    return _now() + timedelta(minutes=settings.auth_token_ttl_minutes)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def issue_api_token(db: Session, *, principal_uid: str, company_id: str, role: PrincipalRole) -> str:
    token = secrets.token_urlsafe(48)
    db.add(
        ApiToken(
            token=token,
            principal_uid=principal_uid,
            company_id=company_id,
            role=role,
            expires_at=_token_expiry(),
        )
    )
    db.flush()
    return token


def revoke_api_token(db: Session, token: str) -> None:
    row = db.execute(select(ApiToken).where(ApiToken.token == token)).scalar_one_or_none()
    if not row or row.revoked_at is not None:
        return
    row.revoked_at = _now()


def load_principal_from_token(db: Session, token: str | None) -> Principal | None:
    if not token:
        return None

    row = db.execute(select(ApiToken).where(ApiToken.token == token)).scalar_one_or_none()
    if not row:
        return None

    now = _now()
    if row.revoked_at is not None or _as_utc(row.expires_at) <= now:
        return None

    row.last_seen_at = now
    row.expires_at = _token_expiry()
    role = Role(row.role.value if hasattr(row.role, 'value') else row.role)
    return Principal(uid=row.principal_uid, company_id=row.company_id, role=role)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get('authorization', '')
    scheme, _, value = header.partition(' ')
    if scheme.lower() != 'bearer':
        return None
    return value.strip() or None


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        if request.url.path in AUTH_EXEMPT_PATHS:
            request.state.principal = None
            return await call_next(request)

        with SessionLocal() as db:
            principal = load_principal_from_token(db, _bearer_token(request))
            request.state.principal = principal
            db.commit()

        if principal is None:
            return JSONResponse({'error': 'Authentication failed.'}, status_code=401)
        return await call_next(request)
