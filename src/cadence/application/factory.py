"""
Adapter Factory
Centralizes the logic for building stores and services from configuration.
"""

from cadence.application.config import AppConfig, ConfigSettingsProvider
from cadence.application.reconciler import ProgressReconciler
from cadence.application.study_service import StudyService
from cadence.domain.clock import SystemClock
from cadence.domain.exceptions import NotAuthenticatedError
from cadence.domain.ports import CardStore, RemoteProgressStore
from cadence.infrastructure.adapters.http_progress import HttpProgressStore
from cadence.infrastructure.adapters.sqlite_store import SqliteProgressStore, SqliteStore


def get_store(config: AppConfig) -> SqliteStore:
    return SqliteStore(config.db_path)


def get_study_service(
    config: AppConfig, store: SqliteStore, overrides: dict | None = None
) -> StudyService:
    """
    Returns a StudyService whose settings are re-resolved on every computation.
    """
    return StudyService(
        store=store,
        log_store=store,
        settings_provider=ConfigSettingsProvider(overrides),
        clock=SystemClock(day_offset=config.day_offset),
    )


def get_remote_store(config: AppConfig) -> RemoteProgressStore:
    """
    Returns the remote progress store: HTTP if a remote URL is configured,
    otherwise the local progress database (single-machine setups).
    """
    if config.remote_url:
        return HttpProgressStore(config.remote_url, token=config.remote_token)
    return SqliteProgressStore(config.progress_db_path)


def get_reconciler(config: AppConfig, store: CardStore) -> ProgressReconciler:
    if not config.user_id:
        raise NotAuthenticatedError("Set user_id (CADENCE_USER_ID or --user) to sync progress")
    return ProgressReconciler(store=store, remote=get_remote_store(config))
