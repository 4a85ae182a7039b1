from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class IdentityResponse(BaseModel):
    id: UUID
    provider: str
    provider_user_id: str
    email: Optional[str]
    is_primary: bool
    linked_at: Optional[datetime]
    last_login_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: UUID
    primary_email: str
    name: Optional[str]
    picture_url: Optional[str]
    email_verified: bool
    identities: List[IdentityResponse] = []

    class Config:
        from_attributes = True


class MembershipResponse(BaseModel):
    """A user's membership in one organization."""
    id: UUID
    org_ref_id: UUID
    role: str
    org_slug: Optional[str]
    org_display_name: Optional[str]
    accepted_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class MemberUserResponse(BaseModel):
    id: UUID
    primary_email: str
    name: Optional[str]

    class Config:
        from_attributes = True


class OrganizationMemberResponse(BaseModel):
    """A member as seen by the rest of the organization."""
    id: UUID
    user_id: UUID
    role: str
    user: MemberUserResponse
    invited_by: Optional[UUID]
    accepted_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class OrganizationResponse(BaseModel):
    id: UUID
    external_org_id: str
    slug: str
    display_name: Optional[str]
    role: str

    class Config:
        from_attributes = True


class SiteMembershipResponse(BaseModel):
    id: UUID
    membership_id: UUID
    site_ref_id: UUID
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class AddMemberRequest(BaseModel):
    """Add a user to the current organization, or update their role."""
    user_id: UUID
    role: str = "viewer"

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "7b0f7c9e-3f1e-4d8a-9a53-0c9f1d2b6a11",
                "role": "global_user"
            }
        }


class UpdateMemberRoleRequest(BaseModel):
    role: str

    class Config:
        json_schema_extra = {
            "example": {
                "role": "global_admin"
            }
        }


class GrantSiteAccessRequest(BaseModel):
    user_id: UUID
    role: str


class UpdateOrganizationRequest(BaseModel):
    display_name: Optional[str] = None
