"""
FastAPI dependencies resolving the components owned by the application
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from core.database import Database
from ingestion.auth.oauth import CredentialManager
from ingestion.runner import SyncRunner
from ingestion.scheduler import SyncScheduler
from ingestion.state import SettingsProgressStore


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session bound to the application's database"""
    async with get_database(request).session() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_runner(request: Request) -> SyncRunner:
    return request.app.state.runner


def get_progress_store(request: Request) -> SettingsProgressStore:
    return request.app.state.progress


def get_credential_manager(request: Request) -> CredentialManager:
    return request.app.state.credential_manager


def get_scheduler(request: Request) -> SyncScheduler:
    return request.app.state.scheduler
