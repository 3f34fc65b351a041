from dataclasses import dataclass, field
from typing import List, Optional

from app.core.permissions import Permissions


@dataclass(frozen=True)
class RequestContext:
    """Per-request caller identity.

    Built once at the API boundary and passed explicitly into the domain
    services, which scope every query by ``tenant_id``.
    """
    tenant_id: str
    token: str
    user_id: Optional[str] = None
    app_id: Optional[str] = None
    permissions: List[str] = field(default_factory=list)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions or Permissions.SYSTEM_ADMIN in self.permissions
