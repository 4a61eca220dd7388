"""
REST API over a Mailchimp audience: contact CRUD and CSV import/export.
"""

__version__ = "0.1.0"
