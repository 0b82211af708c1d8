"""FastAPI dependencies for database sessions, company context and services."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session

logger = logging.getLogger(__name__)


def get_company_id(
    x_company_id: Annotated[str | None, Header()] = None,
) -> UUID:
    """Company scope for the request, taken from the X-Company-ID header."""
    if not x_company_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Company context required. Set X-Company-ID header.",
        )
    try:
        return UUID(x_company_id)
    except ValueError:
        logger.warning(f"Invalid company ID format: {x_company_id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid company ID format",
        )


# Type aliases for cleaner dependency injection
SessionDep = Annotated[AsyncSession, Depends(get_session)]
CompanyIdDep = Annotated[UUID, Depends(get_company_id)]
