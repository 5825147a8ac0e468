"""FastAPI dependency injection for the API."""

from typing import Generator

from fastapi import Depends, HTTPException, Query, Request, status

from energy_tracker.config import Config
from energy_tracker.db import Database, User


def get_config(request: Request) -> Config:
    """Get the application configuration from app state."""
    return request.app.state.config


def get_db(config: Config = Depends(get_config)) -> Generator[Database, None, None]:
    """Get a database connection.

    Yields a Database instance that is automatically closed after the request.
    """
    db = Database(config.database.path)
    db.initialize()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    user_id: int | None = Query(default=None),
    db: Database = Depends(get_db),
) -> User:
    """Get the acting user from the ``user_id`` query parameter.

    Raises HTTPException 401 if no user is given, 404 if it doesn't exist.
    """
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication is required",
        )
    user = db.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Require the acting user to be an active admin.

    Raises HTTPException 403 otherwise.
    """
    if not (user.is_admin and user.is_active):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
