"""Member and push subscription models."""

from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class Member(BaseModel):
    """Household member."""

    id: UUID = Field(default_factory=uuid4, description="Unique member ID")
    name: str = Field(..., min_length=1, description="Display name")


class PushSubscription(BaseModel):
    """A device endpoint that receives push notifications for a member."""

    id: UUID = Field(default_factory=uuid4, description="Unique subscription ID")
    member_id: UUID = Field(..., description="Member receiving the notifications")
    endpoint: str = Field(..., description="Transport-specific delivery address")
    is_active: bool = Field(default=True, description="False once the transport reports it expired")
