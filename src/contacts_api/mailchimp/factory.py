"""
Mailing-list provider factory.

Single source of truth for provider construction: the provider is built once
per process from ``Settings`` and handed to request handlers through the
``get_provider`` dependency, which tests override.
"""

from __future__ import annotations

from functools import lru_cache

from contacts_api.config import ProviderType, Settings, get_settings
from contacts_api.mailchimp.client import MailchimpClient
from contacts_api.mailchimp.interface import MailingListProvider
from contacts_api.mailchimp.mock import InMemoryMailingListProvider
from contacts_api.shared.logging import get_logger

logger = get_logger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


def build_provider(settings: Settings) -> MailingListProvider:
    """Create the provider selected by ``settings.provider_type``."""
    logger.info(
        "Mailing-list provider config resolved",
        extra={
            "provider_type": settings.provider_type.value,
            "mailchimp_api_key": _mask(settings.mailchimp_api_key),
            "mailchimp_server": settings.mailchimp_data_center,
            "mailchimp_list_id": settings.mailchimp_list_id,
        },
    )

    if settings.provider_type == ProviderType.MAILCHIMP:
        return MailchimpClient(
            api_key=settings.mailchimp_api_key,
            server=settings.mailchimp_data_center,
            timeout=settings.mailchimp_timeout_seconds,
        )

    if settings.provider_type == ProviderType.MOCK:
        return InMemoryMailingListProvider()

    raise ValueError(f"Unsupported provider_type: {settings.provider_type}")


@lru_cache(maxsize=1)
def get_provider() -> MailingListProvider:
    """Return the process-wide provider."""
    return build_provider(get_settings())
