"""FastAPI dependencies backed by app.state populated in the lifespan."""

from typing import Annotated

from fastapi import Depends, Request

from app.db.store import Store


def get_store(request: Request) -> Store:
    return request.app.state.store


StoreDep = Annotated[Store, Depends(get_store)]
