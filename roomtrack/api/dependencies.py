# =======================================================================================
# roomtrack/api/dependencies.py - FastAPI Dependencies
# =======================================================================================
from typing import ContextManager
from fastapi import Depends, Request
from sqlalchemy.engine import Connection
from ..config import config
from ..services import Services
from ..utils.deadline import Deadline


def get_deadline(request: Request) -> Deadline:
    """Deadline from X-Request-Timeout, or the configured default."""
    return Deadline.from_header(request.headers.get("X-Request-Timeout"), config.REQUEST_TIMEOUT)


def get_transaction(request: Request, deadline: Deadline = Depends(get_deadline)) -> ContextManager[Connection]:
    """
    Dependency to get the request's transaction, not yet started.

    Routes enter it with ``with tx as conn:`` and return from inside the
    block, so the deadline check and the commit both finish before the
    response is built. Store errors propagate to the app's handlers after
    the rollback.
    """
    return request.app.state.db.transaction(deadline)


def get_services(request: Request) -> Services:
    return request.app.state.services
