import uuid
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from core.db import engine


def get_db() -> Generator:
    with Session(engine) as session:
        yield session


def get_current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> uuid.UUID:
    # identity is authenticated upstream and forwarded in this header
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user")
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user")


SessionDep = Annotated[Session, Depends(get_db)]
CurrentUserDep = Annotated[uuid.UUID, Depends(get_current_user_id)]
