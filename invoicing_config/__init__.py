"""
invoicing_config -- single public entrypoint for invoicing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration.  Sits above ``invoicing_kernel`` and below
    ``invoicing_engines`` / ``invoicing_modules`` / ``invoicing_services``,
    which receive the config by injection.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Loaded once per process; later calls return the same frozen object.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML file does not exist.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.

Audit relevance:
    The first load emits an ``invoicing_config_loaded`` log entry with the
    config_id, version, source path and checksum.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from invoicing_config.loader import load_config
from invoicing_config.schema import InvoiceBasisConfig, LineTypeDefaults, TextLimits
from invoicing_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_FILE = _DEFAULT_CONFIG_DIR / "default.yaml"

CONFIG_PATH_ENV = "INVOICING_CONFIG_PATH"

_active: InvoiceBasisConfig | None = None
_lock = threading.Lock()


def get_active_config(config_path: Path | None = None) -> InvoiceBasisConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the source file: ``config_path`` argument,
    ``INVOICING_CONFIG_PATH`` environment variable, shipped
    ``sets/default.yaml``.  An explicit ``config_path`` always loads fresh
    and is not cached.
    """
    global _active

    if config_path is not None:
        return _load_and_trace(Path(config_path))

    with _lock:
        if _active is None:
            env_path = os.environ.get(CONFIG_PATH_ENV)
            path = Path(env_path) if env_path else _DEFAULT_CONFIG_FILE
            _active = _load_and_trace(path)
        return _active


def reset_active_config() -> None:
    """Drop the cached configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


def _load_and_trace(path: Path) -> InvoiceBasisConfig:
    config = load_config(path)
    _logger.info(
        "invoicing_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "config_path": str(path),
            "checksum": config.checksum,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "reset_active_config",
    "InvoiceBasisConfig",
    "LineTypeDefaults",
    "TextLimits",
    "CONFIG_PATH_ENV",
]
