"""
Contact management over the mailing-list provider.
"""
