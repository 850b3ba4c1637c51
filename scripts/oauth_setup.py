"""
Interactive OAuth handshake in a terminal.

Prints the authorize URL, waits for the verification code and stores the
resulting credential in the settings table.
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import Database
from core.exceptions import SyncError
from core.logging import setup_logging
from ingestion.auth.oauth import CredentialManager, CredentialStore, DatabaseTicketCache
from ingestion.state import SettingsStore

logger = logging.getLogger(__name__)


async def oauth_setup() -> int:
    database = Database(settings.DATABASE_URL, echo=False)

    try:
        await database.create_all()
        manager = CredentialManager(
            CredentialStore(SettingsStore(database)),
            DatabaseTicketCache(database),
            settings=settings
        )

        if await manager.is_authenticated():
            print("OAuth tokens already exist. Nothing to do.")
            return 0

        start = await manager.begin_handshake()
        print(f"\nVisit this URL and authorize the application:\n\n    {start.authorize_url}\n")
        print(f"The request token expires at {start.expires_at:%H:%M:%S} UTC.")

        loop = asyncio.get_running_loop()
        verifier = (await loop.run_in_executor(None, input, "Verification code: ")).strip()
        if not verifier:
            print("No verification code entered.")
            return 1

        await manager.complete_handshake(start.token, verifier)
        print("OAuth authentication completed; credential stored.")
        return 0
    except SyncError as e:
        logger.error(f"OAuth setup failed: {e.message}")
        return 1
    finally:
        await database.close()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(oauth_setup()))
