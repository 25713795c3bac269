from fastapi import Request
from sqlalchemy.orm import sessionmaker

from stockroom.db import SessionLocal


def get_history_session_factory() -> sessionmaker:
    # Batch history loaders open one session per item, possibly from worker threads.
    return SessionLocal


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',', 1)[0].strip() or None
    return request.client.host if request.client else None
