import logging
from typing import Iterable

from ..core.config import AccountSettings
from ..core.exceptions import ValidationError
from .session_store import SessionStore

logger = logging.getLogger(__name__)


def load_accounts(store: SessionStore, accounts: Iterable[AccountSettings]) -> int:
    """Register pre-provisioned users. Returns how many were added."""
    added = 0
    for account in accounts:
        try:
            created = store.register_account(account.id, account.username, account.token)
        except ValidationError as e:
            logger.error("Skipping account %s: %s", account.username, e.message)
            continue

        if created:
            added += 1
            logger.info("Added user %s to database", account.username)
        else:
            logger.debug("User %s already present, leaving it untouched", account.username)
    return added
