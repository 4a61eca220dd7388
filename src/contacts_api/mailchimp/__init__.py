"""
Mailchimp provider integration.
"""
