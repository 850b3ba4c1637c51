"""
Collection synchronization engine.

Modules:
    http: Shared request headers and response classification
    pagination: Walks the listing's continuation references
    valuation: Condition-priority value resolution and currency parsing
    state: Settings key/value store and the progress/status surface
    runner: Sync orchestrator with single-flight guard
    scheduler: APScheduler cron trigger for unattended runs

Subpackages:
    auth: OAuth request signing, handshake tickets and credential storage
    extractors: Signed catalog API client
    loaders: Transactional collection replace

Architecture:
    One run walks every listing page, looks up the collection's aggregate
    value, resolves a price per item and finally replaces the stored items
    and appends a value snapshot in a single transaction:

    1. Pre-flight - configuration checked, no network call on failure
    2. Extract - pages fetched one at a time under the retry policy
    3. Enrich - per-item failures degrade to a null value
    4. Load - all-or-nothing; the previous item set survives any failure

Usage:
    from core.database import Database
    from ingestion.runner import SyncRunner

    database = Database().open()
    result = await SyncRunner(database).run()
    print(result.message)

Error Handling:
    All components raise exceptions from core.exceptions; retryability is
    read from the exception's ``retryable`` flag.
"""

__all__ = [
    "SyncRunner",
    "SyncScheduler",
    "CatalogClient",
    "CredentialManager",
    "CollectionLoader",
    "ValueResolver",
    "SettingsProgressStore",
]
