"""
Access-control error taxonomy.

Every authorization failure carries a distinct machine-readable code so
clients can render the right corrective UI ("sign in", "select an
organization", "you don't have access") instead of a generic 403.

Infrastructure failures (SQLAlchemyError and friends) are deliberately not
part of this hierarchy: they propagate untouched and surface as 500s.
"""
from typing import Optional
from uuid import UUID

from fastapi import status


class AccessError(Exception):
    """Base class for errors rendered as structured JSON responses."""

    code = "ACCESS_ERROR"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class AuthenticationRequired(AccessError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class OrganizationContextRequired(AccessError):
    code = "ORG_CONTEXT_REQUIRED"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Organization context required. Set the X-Org-Id header."


class OrganizationAccessDenied(AccessError):
    """The caller has no membership in the selected org.

    Raised identically whether or not the org exists.
    """

    code = "ORG_ACCESS_DENIED"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have access to this organization"


class InsufficientRole(AccessError):
    code = "INSUFFICIENT_ROLE"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Your role does not allow this operation"

    def __init__(self, required: str, actual: Optional[str] = None):
        self.required = required
        self.actual = actual
        super().__init__(f"{required} access required")

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["required_role"] = self.required
        return payload


class IdentityConflict(AccessError):
    """An external identity is already linked to a different user.

    retryable=True marks a lost race between two concurrent first logins for
    the same identity: replaying the request resolves to the winning user.
    """

    code = "IDENTITY_CONFLICT"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This identity is already linked to another account"

    def __init__(
        self,
        provider: str,
        provider_user_id: str,
        existing_user_id: Optional[UUID] = None,
        retryable: bool = False,
    ):
        self.provider = provider
        self.provider_user_id = provider_user_id
        self.existing_user_id = existing_user_id
        self.retryable = retryable
        if retryable:
            message = f"Concurrent sign-in detected for {provider} identity; retry the request"
        else:
            message = f"{provider} identity is already linked to another account"
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["provider"] = self.provider
        payload["retryable"] = self.retryable
        return payload


class MembershipRequired(AccessError):
    code = "MEMBERSHIP_REQUIRED"
    status_code = status.HTTP_409_CONFLICT
    default_message = "User must be a member of the organization first"


class LastOwnerError(AccessError):
    code = "LAST_OWNER"
    status_code = status.HTTP_409_CONFLICT
    default_message = "An organization must keep at least one owner"


class NotFound(AccessError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"
