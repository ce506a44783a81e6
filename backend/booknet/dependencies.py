"""
BookNet Backend — Request Dependencies
=======================================

What:  FastAPI dependencies resolving the acting identity and the catalog store.

Identity:
    Credentials are verified by the authenticating gateway in front of this
    service, which forwards the caller's user id in the X-User-ID header.
    This dependency only parses it; the resulting int is then passed
    explicitly into every service call (no ambient security context).
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from booknet.database import get_db_session
from booknet.exceptions import AuthenticationError
from booknet.services.catalog_store import CatalogStore, SqlAlchemyCatalogStore


async def get_current_user_id(
    x_user_id: Optional[str] = Header(
        default=None,
        alias="X-User-ID",
        description="Verified id of the acting user, set by the authenticating gateway",
    ),
) -> int:
    if x_user_id is None or not x_user_id.strip():
        raise AuthenticationError()
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise AuthenticationError(message="Invalid user identity")
    if user_id <= 0:
        raise AuthenticationError(message="Invalid user identity")
    return user_id


async def get_catalog_store(
    db: AsyncSession = Depends(get_db_session),
) -> CatalogStore:
    return SqlAlchemyCatalogStore(db)
