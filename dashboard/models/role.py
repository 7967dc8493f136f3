"""Closed role and action enumerations for access control."""

from enum import Enum as PyEnum


class GlobalRole(str, PyEnum):
    """
    Roles a principal can hold.

    Role Hierarchy (highest to lowest):
    1. OWNER - Full system access. Only meaningful as a global grant.
    2. OPERATOR - Manages tenants on behalf of the owner (read/write any tenant)
    3. MEMBER - Scoped to explicitly granted tenants, read-only

    A principal without a global grant is a MEMBER. As a tenant-scoped grant,
    OPERATOR gives read/write on that one tenant and MEMBER gives read.
    """

    OWNER = "owner"
    OPERATOR = "operator"
    MEMBER = "member"


class Action(str, PyEnum):
    """Operations checked by the access policy engine"""

    READ = "read"
    WRITE = "write"
    ADMIN_MANAGE_USERS = "admin_manage_users"
    ADMIN_MANAGE_BRANDING = "admin_manage_branding"


class Decision(str, PyEnum):
    """Outcome of an authorization check"""

    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


# Actions a tenant-scoped grant can unlock. Admin actions are never granted per tenant.
TENANT_GRANT_PERMISSIONS: dict[GlobalRole, frozenset[Action]] = {
    GlobalRole.OPERATOR: frozenset({Action.READ, Action.WRITE}),
    GlobalRole.MEMBER: frozenset({Action.READ}),
}
