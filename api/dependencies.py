"""
Request dependencies shared by the routers.
"""

import logging
import secrets
from typing import Optional

from fastapi import Header, Request

from briefdesk.errors import ForbiddenError
from briefdesk.services import AppServices

logger = logging.getLogger(__name__)


def get_services(request: Request) -> AppServices:
    """Services built at startup."""
    return request.app.state.services


async def require_admin(
    request: Request,
    x_admin_token: Optional[str] = Header(None),
) -> None:
    """
    Require the admin capability.

    Raises:
        ForbiddenError: no ADMIN_TOKEN configured, or the header does not match
    """
    expected = get_services(request).admin_token
    if not expected:
        logger.warning("Admin request refused: ADMIN_TOKEN is not configured")
        raise ForbiddenError("Admin operations are disabled")

    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise ForbiddenError("Admin access required")
