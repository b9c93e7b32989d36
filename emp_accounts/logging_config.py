from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this service.

    Notes:
    - Uvicorn already configures handlers; this only sets the level for our package.
    - Set `APP_LOG_LEVEL=DEBUG` to see per-query tenant scoping decisions.
    """

    normalized = level.upper()
    logging.getLogger("emp_accounts").setLevel(normalized)
    logging.getLogger("emp_accounts").propagate = True
