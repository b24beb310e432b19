"""
Directory Export - identity data extraction and delivery pipeline.

Pulls users, groups and group memberships from a paginated directory API
and streams them, in size-bounded batches, to a message-ingestion endpoint.
"""

__version__ = "0.1.0"
__app_name__ = "direxport"
