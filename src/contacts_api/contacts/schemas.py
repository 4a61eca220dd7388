"""
Pydantic schemas for contacts and Mailchimp list members.
"""

from pydantic import BaseModel, ConfigDict, Field


class ContactBody(BaseModel):
    """Flat contact representation accepted by POST/PUT /v1/contacts.

    Every field is optional at the HTTP boundary; the mapper decides what is
    actually required.
    """

    model_config = ConfigDict(extra="ignore")

    email: str | None = Field(default=None, description="Contact email address")
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    address_1: str | None = None
    address_2: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None


class MergeFields(BaseModel):
    """Mailchimp merge fields used by this audience.

    Other merge fields the audience may define are kept as extra attributes.
    """

    model_config = ConfigDict(extra="allow")

    FNAME: str | None = None
    LNAME: str | None = None
    PHONE: str | None = None
    ADDR1: str | None = None
    ADDR2: str | None = None
    CITY: str | None = None
    STATE: str | None = None
    ZIP: str | None = None
    COUNTRY: str | None = None


class Member(BaseModel):
    """A Mailchimp list member."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    email_address: str
    status: str | None = None
    merge_fields: MergeFields = Field(default_factory=MergeFields)
    last_changed: str | None = None


class MemberPage(BaseModel):
    """One page of members as returned by the provider."""

    members: list[Member] = Field(default_factory=list)
    total_items: int = 0


class ContactListResponse(BaseModel):
    """Schema for paginated contact list response."""

    members: list[Member]
    total_items: int
    total_pages: int


class BatchMemberError(BaseModel):
    """A row the provider rejected during a batch subscribe."""

    model_config = ConfigDict(extra="allow")

    email_address: str | None = None
    error: str | None = None
    error_code: str | None = None
    field: str | None = None
    field_message: str | None = None


class BatchResult(BaseModel):
    """Outcome of a batch add-or-update, partitioned by the provider."""

    new_members: list[Member] = Field(default_factory=list)
    updated_members: list[Member] = Field(default_factory=list)
    failed_members: list[BatchMemberError] = Field(default_factory=list)


class BatchOperation(BaseModel):
    """A single operation inside a provider batch request."""

    method: str
    path: str
    body: str | None = None
    operation_id: str | None = None


class BatchStatus(BaseModel):
    """Status of a provider batch job."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: str = "pending"
    total_operations: int = 0
    finished_operations: int = 0
    errored_operations: int = 0

    @property
    def is_finished(self) -> bool:
        return self.status == "finished"


class MessageResponse(BaseModel):
    message: str
