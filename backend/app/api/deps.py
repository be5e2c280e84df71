# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from app.schemas.auth import Actor


async def get_actor(
    x_user_name: str | None = Header(default=None),
    x_role: str = Header(default="employee"),
) -> Actor:
    """Build the acting identity from request headers.

    Requests without a user name are attributed to the system actor.
    """
    if not x_user_name:
        return Actor.system()
    return Actor(name=x_user_name, role=x_role)


ActorDep = Annotated[Actor, Depends(get_actor)]
