# Overview: Explicit per-request identity and store selection passed into services.

from __future__ import annotations

from dataclasses import dataclass

from .models.auth import ROLE_ADMIN, ROLE_MANAGER


@dataclass(frozen=True)
class RequestContext:
    """
    Who is acting, in which store.

    Built by the require_store_access decorator after the store selection
    has been checked against the user's grants. Services never read request
    globals; they receive this object as their first argument.
    """
    user_id: int
    store_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role in (ROLE_ADMIN, ROLE_MANAGER)
