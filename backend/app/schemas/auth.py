from __future__ import annotations

from pydantic import BaseModel

SYSTEM_ACTOR_NAME = "System"


class Actor(BaseModel):
    """Identity of whoever is making the change, supplied by the identity provider.

    ``name`` is None when the call is not attributed to a person; audit fields
    then record "System".
    """

    name: str | None = None
    role: str = "employee"

    @classmethod
    def system(cls) -> Actor:
        return cls(name=None, role="system")

    @property
    def display_name(self) -> str:
        return self.name or SYSTEM_ACTOR_NAME
