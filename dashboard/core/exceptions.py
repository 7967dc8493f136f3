class DashboardException(Exception):
    """Base exception for the dashboard API"""

    reason: str = "error"


class UnauthorizedException(DashboardException):
    """Raised when JWT validation fails"""

    reason = "unauthenticated"


class NotFoundException(DashboardException):
    """Raised when resource not found"""

    reason = "not_found"


class ForbiddenException(DashboardException):
    """Raised when the access policy engine denies an action"""

    reason = "forbidden"


class ValidationException(DashboardException):
    """Raised for business logic validation errors"""

    reason = "invalid"


class DuplicateSlugException(ValidationException):
    """Raised when a tenant slug is already taken"""

    reason = "duplicate_slug"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Slug '{slug}' is already in use")


class ResolutionUnavailable(DashboardException):
    """
    Raised when the grant store cannot be read.

    Callers must treat this as a denial. It never stands in for a default role.
    """

    reason = "resolution_unavailable"


class LastOwnerRevocationRejected(DashboardException):
    """Raised when a change would leave the system without an owner"""

    reason = "last_owner"

    def __init__(self, message: str = "Cannot remove or downgrade the last owner"):
        super().__init__(message)


class MalformedObservation(ValidationException):
    """
    Raised for one row of a merge batch that fails validation.

    Caught by the reconciler and recorded as a skipped row; it never aborts
    a batch.
    """

    reason = "malformed_observation"


class InvitationError(DashboardException):
    """Base for invitation acceptance failures (no access is granted)"""

    pass


class InvitationNotFound(InvitationError):
    """Token does not match any invitation"""

    reason = "not_found"


class InvitationAlreadyUsed(InvitationError):
    """Invitation was already accepted"""

    reason = "already_used"


class InvitationRevoked(InvitationAlreadyUsed):
    """Invitation was revoked by an administrator"""

    reason = "revoked"


class InvitationExpired(InvitationError):
    """Invitation passed its expiry without being accepted"""

    reason = "expired"
