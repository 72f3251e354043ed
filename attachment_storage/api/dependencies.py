"""
FastAPI dependency injection.

Dependencies provide the configured storage backend and settings to
route handlers, so routes never build their own clients and tests can
override them with ``app.dependency_overrides``.
"""

import logging
from typing import Annotated

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.storage import Storage
from ..infrastructure.storage import create_storage

logger = logging.getLogger(__name__)

# Storage backends are stateless after construction, so one instance is
# shared by all requests (and, in mock mode, keeps uploads alive).
_storage: Storage | None = None


def get_storage(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Storage:
    """Provide the storage backend, creating it on first use."""
    global _storage

    if _storage is None:
        _storage = create_storage(settings)
        logger.info(
            "Created shared storage backend",
            extra={"backend": type(_storage).__name__, "mock_mode": settings.storage_mock_mode}
        )

    return _storage


def reset_storage() -> None:
    """Drop the shared backend so the next request rebuilds it from settings."""
    global _storage
    _storage = None


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

StorageDep = Annotated[Storage, Depends(get_storage)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
