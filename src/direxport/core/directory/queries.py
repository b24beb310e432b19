"""
Directory query catalog.

Builds the first-page URLs for the three collections the export walks:
users, groups, and the members of one group. Later pages come from the
continuation links the directory returns.
"""

from __future__ import annotations

from urllib.parse import quote, urlencode

USER_FIELDS = (
    "id",
    "displayName",
    "givenName",
    "surname",
    "userPrincipalName",
    "mail",
    "accountEnabled",
    "userType",
    "createdDateTime",
)

# Organisation and on-premises sync attributes, only when requested
EXTENDED_USER_FIELDS = (
    "jobTitle",
    "department",
    "companyName",
    "officeLocation",
    "employeeId",
    "employeeType",
    "usageLocation",
    "onPremisesSyncEnabled",
    "onPremisesSamAccountName",
    "onPremisesDistinguishedName",
    "onPremisesLastSyncDateTime",
)

GROUP_FIELDS = (
    "id",
    "displayName",
    "description",
    "mail",
    "mailEnabled",
    "securityEnabled",
    "groupTypes",
    "createdDateTime",
)

MEMBER_FIELDS = (
    "id",
    "displayName",
    "userPrincipalName",
    "mail",
)


def _collection_url(base_url: str, path: str, fields: tuple[str, ...], page_size: int) -> str:
    query = urlencode({"$select": ",".join(fields), "$top": str(page_size)}, safe="$,")
    return f"{base_url.rstrip('/')}/{path}?{query}"


def user_fields(include_extended_properties: bool = False) -> tuple[str, ...]:
    if include_extended_properties:
        return USER_FIELDS + EXTENDED_USER_FIELDS
    return USER_FIELDS


def users_url(base_url: str, page_size: int, include_extended_properties: bool = False) -> str:
    return _collection_url(base_url, "users", user_fields(include_extended_properties), page_size)


def groups_url(base_url: str, page_size: int) -> str:
    return _collection_url(base_url, "groups", GROUP_FIELDS, page_size)


def group_members_url(base_url: str, group_id: str, page_size: int) -> str:
    return _collection_url(
        base_url,
        f"groups/{quote(group_id, safe='')}/members",
        MEMBER_FIELDS,
        page_size,
    )
