"""
Contact API router.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response

from contacts_api.config import Settings, get_settings
from contacts_api.contacts.csv_parser import EXPORT_FILENAME
from contacts_api.contacts.schemas import (
    BatchResult,
    ContactBody,
    ContactListResponse,
    Member,
    MessageResponse,
)
from contacts_api.contacts.service import DEFAULT_SORT, ITEMS_PER_PAGE, ContactService
from contacts_api.mailchimp.factory import get_provider
from contacts_api.mailchimp.interface import MailingListProvider
from contacts_api.shared.exceptions import MissingFileError
from contacts_api.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/contacts", tags=["contacts"])


def get_contact_service(
    provider: Annotated[MailingListProvider, Depends(get_provider)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ContactService:
    """Dependency for contact service."""
    return ContactService(provider=provider, settings=settings)


async def read_upload(file: UploadFile | None) -> bytes:
    """Return the uploaded file content.

    Raises:
        MissingFileError: If no file was attached, or it is empty.
    """
    if file is None:
        raise MissingFileError()

    content = await file.read()
    if not content:
        raise MissingFileError("Empty file uploaded")

    logger.info(
        "CSV received",
        extra={
            "upload_filename": file.filename,
            "content_type": file.content_type,
            "size_bytes": len(content),
        },
    )
    return content


@router.get(
    "",
    response_model=ContactListResponse,
    response_model_exclude_none=True,
    summary="List contacts",
)
async def list_contacts(
    service: Annotated[ContactService, Depends(get_contact_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=1000)] = ITEMS_PER_PAGE,
    sort: Annotated[str, Query(pattern="(?i)^(asc|desc)$")] = DEFAULT_SORT,
) -> ContactListResponse:
    """Return the paginated list of contacts, sorted by last change."""
    return await service.get_contacts(page=page, limit=limit, sort=sort)


@router.post(
    "",
    response_model=Member,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Add a contact",
)
async def add_contact(
    body: ContactBody,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> Member:
    """Add a contact to the list. Fails if the email already exists."""
    return await service.add_contact(body)


@router.put(
    "",
    response_model=Member,
    response_model_exclude_none=True,
    summary="Update a contact",
)
async def update_contact(
    body: ContactBody,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> Member:
    """Update the contact addressed by ``email``."""
    return await service.update_contact(body)


@router.post(
    "/csv",
    response_model=BatchResult,
    response_model_exclude_none=True,
    summary="Import contacts CSV",
    description="Add or update contacts from a CSV file sent as the multipart field `file`.",
)
async def import_contacts_csv(
    service: Annotated[ContactService, Depends(get_contact_service)],
    file: Annotated[UploadFile | None, File(description="Contacts CSV")] = None,
) -> BatchResult:
    content = await read_upload(file)
    return await service.import_csv(content)


@router.post(
    "/csv/replace",
    response_model=BatchResult,
    response_model_exclude_none=True,
    summary="Replace contacts from CSV",
    description="Delete every contact of the list, then add the contacts of the CSV file.",
)
async def replace_contacts_csv(
    service: Annotated[ContactService, Depends(get_contact_service)],
    file: Annotated[UploadFile | None, File(description="Contacts CSV")] = None,
) -> BatchResult:
    content = await read_upload(file)
    return await service.replace_from_csv(content)


@router.get(
    "/csv",
    response_class=Response,
    summary="Export contacts CSV",
)
async def export_contacts_csv(
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> Response:
    csv_text = await service.export_csv()
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )


@router.delete(
    "/{email}",
    response_model=MessageResponse,
    summary="Archive a contact",
)
async def delete_contact(
    email: str,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> MessageResponse:
    await service.delete_contact(email)
    return MessageResponse(message="Succesful")
