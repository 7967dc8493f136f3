"""Resolved identity passed from the identity resolver to the policy engine."""

from dataclasses import dataclass, field
from dashboard.models.role import GlobalRole


@dataclass(frozen=True)
class ResolvedIdentity:
    """
    A principal's effective roles at the moment of resolution.

    Attributes:
        principal_id: Internal principal id
        global_role: Role from the global grant, MEMBER when there is none
        tenant_grants: (tenant_id, role) pairs from tenant-scoped grants
    """

    principal_id: int
    global_role: GlobalRole
    tenant_grants: tuple[tuple[int, GlobalRole], ...] = field(default_factory=tuple)

    def role_for(self, tenant_id: int) -> GlobalRole | None:
        """Role granted on one tenant, or None when there is no grant."""
        for granted_tenant_id, role in self.tenant_grants:
            if granted_tenant_id == tenant_id:
                return role
        return None

    @property
    def tenant_ids(self) -> list[int]:
        return [tenant_id for tenant_id, _ in self.tenant_grants]

    def is_owner(self) -> bool:
        return self.global_role == GlobalRole.OWNER

    def is_operator_or_higher(self) -> bool:
        return self.global_role in (GlobalRole.OWNER, GlobalRole.OPERATOR)
