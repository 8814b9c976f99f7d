"""Clerk webhook payloads, modelled as a union tagged by the event ``type``.

Each variant declares exactly the fields its handler relies on. Everything
else Clerk sends is ignored.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class WebhookModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class EmailAddress(WebhookModel):
    id: Optional[str] = None
    email_address: str


class UserData(WebhookModel):
    id: str
    email_addresses: list[EmailAddress] = []
    primary_email_address_id: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def primary_email(self) -> Optional[str]:
        """The primary address, falling back to the first one listed."""
        for address in self.email_addresses:
            if address.id and address.id == self.primary_email_address_id:
                return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return None


class DeletedObjectData(WebhookModel):
    id: str
    deleted: bool = True


class OrganizationRef(WebhookModel):
    id: str
    name: Optional[str] = None


class PublicUserData(WebhookModel):
    user_id: str
    identifier: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class MembershipData(WebhookModel):
    id: Optional[str] = None
    role: Optional[str] = None
    organization: OrganizationRef
    public_user_data: PublicUserData


class UserCreatedEvent(WebhookModel):
    type: Literal["user.created"]
    data: UserData


class UserUpdatedEvent(WebhookModel):
    type: Literal["user.updated"]
    data: UserData


class UserDeletedEvent(WebhookModel):
    type: Literal["user.deleted"]
    data: DeletedObjectData


class MembershipCreatedEvent(WebhookModel):
    type: Literal["organizationMembership.created"]
    data: MembershipData


class MembershipUpdatedEvent(WebhookModel):
    type: Literal["organizationMembership.updated"]
    data: MembershipData


class MembershipDeletedEvent(WebhookModel):
    type: Literal["organizationMembership.deleted"]
    data: MembershipData


class OrganizationDeletedEvent(WebhookModel):
    type: Literal["organization.deleted"]
    data: DeletedObjectData


ClerkEvent = Annotated[
    Union[
        UserCreatedEvent,
        UserUpdatedEvent,
        UserDeletedEvent,
        MembershipCreatedEvent,
        MembershipUpdatedEvent,
        MembershipDeletedEvent,
        OrganizationDeletedEvent,
    ],
    Field(discriminator="type"),
]

clerk_event_adapter = TypeAdapter(ClerkEvent)

HANDLED_EVENT_TYPES = frozenset(
    {
        "user.created",
        "user.updated",
        "user.deleted",
        "organizationMembership.created",
        "organizationMembership.updated",
        "organizationMembership.deleted",
        "organization.deleted",
    }
)
