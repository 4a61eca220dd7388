"""
Mapping between flat contact records and Mailchimp list members.
"""

from typing import Any, Mapping

from contacts_api.contacts.schemas import ContactBody, MergeFields, Member
from contacts_api.shared.exceptions import ContactValidationError

DEFAULT_STATUS = "subscribed"

# Column headers of the contact import CSV.
CSV_EMAIL = "Email Addresses\\Email address"
CSV_FIRST_NAME = "First name"
CSV_LAST_NAME = "Last/Organization/Group/Household name"
CSV_PHONE = "Phones\\Number"
CSV_ADDRESS_1 = "Addresses\\Address line 1"
CSV_ADDRESS_2 = "Addresses\\Address line 2"
CSV_CITY = "Addresses\\City"
CSV_STATE = "Addresses\\State abbreviation"
CSV_ZIP = "Addresses\\ZIP"
CSV_COUNTRY = "Addresses\\Country abbreviation"


def capitalize_keys(mapping: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``mapping`` with upper-cased keys."""
    return {key.upper(): value for key, value in mapping.items()}


def sanitize(value: Any) -> Any:
    """Recursively drop ``None`` values from dicts and lists.

    Mailchimp rejects explicit nulls on optional fields, so they are removed
    before anything is sent upstream.
    """
    if isinstance(value, Mapping):
        return {k: sanitize(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [sanitize(v) for v in value if v is not None]
    return value


def _text(value: str | None) -> str:
    return value if value is not None else ""


def _address(addr1: str | None, addr2: str | None, city: str | None, state: str | None,
             zip_code: str | None, country: str | None) -> dict[str, str]:
    address = {
        "addr1": _text(addr1),
        "addr2": _text(addr2),
        "city": _text(city),
        "state": _text(state),
        "zip": _text(zip_code),
        "country": _text(country),
    }
    return capitalize_keys(address)


def build_member(body: ContactBody) -> Member:
    """Build the member record for the add and update paths.

    Raises:
        ContactValidationError: If the email address is missing or blank.
    """
    email = (body.email or "").strip()
    if not email:
        raise ContactValidationError("email is required")

    merge_fields = MergeFields(
        FNAME=_text(body.first_name),
        LNAME=_text(body.last_name),
        PHONE=_text(body.phone_number),
        **_address(body.address_1, body.address_2, body.city, body.state, body.zip, body.country),
    )
    return Member(
        email_address=email,
        status=DEFAULT_STATUS,
        merge_fields=merge_fields,
    )


def member_from_csv_row(row: Mapping[str, str | None]) -> Member:
    """Build a member from one import CSV row.

    A blank email is kept as an empty string: the provider reports it in the
    batch failure partition instead of the row disappearing here.
    """
    merge_fields = MergeFields(
        FNAME=_text(row.get(CSV_FIRST_NAME)),
        LNAME=_text(row.get(CSV_LAST_NAME)),
        PHONE=_text(row.get(CSV_PHONE)),
        **_address(
            row.get(CSV_ADDRESS_1),
            row.get(CSV_ADDRESS_2),
            row.get(CSV_CITY),
            row.get(CSV_STATE),
            row.get(CSV_ZIP),
            row.get(CSV_COUNTRY),
        ),
    )
    return Member(
        email_address=_text(row.get(CSV_EMAIL)).strip(),
        status=DEFAULT_STATUS,
        merge_fields=merge_fields,
    )


def member_payload(member: Member) -> dict[str, Any]:
    """JSON body sent upstream for a member, without null values."""
    return sanitize(member.model_dump())
