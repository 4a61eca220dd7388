"""Subscriber hash used by Mailchimp to address a single list member."""

import hashlib


def subscriber_hash(email: str) -> str:
    """Return the MD5 hex digest of the lowercased email address."""
    return hashlib.md5(email.lower().encode("utf-8")).hexdigest()
