import hmac
import logging
from typing import Optional

from fastapi import Header

from app.core.config import get_settings
from app.core.errors import UnauthorizedError

settings = get_settings()
logger = logging.getLogger(__name__)


def require_sync_key(x_sync_key: Optional[str] = Header(default=None)) -> None:
    secret = settings.sync_secret_key
    if not secret:
        logger.warning("SYNC_SECRET_KEY is not set. Sync endpoints are unprotected.")
        return
    if not x_sync_key or not hmac.compare_digest(x_sync_key.encode(), secret.encode()):
        raise UnauthorizedError("Unauthorized. Provide a valid x-sync-key header.")
