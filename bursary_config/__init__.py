"""
bursary_config -- single public entrypoint for bursary configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or ``BURSARY_*`` environment variables directly.

Architecture position:
    Configuration sits above ``bursary_kernel``.  The kernel MUST NEVER
    import from ``bursary_config``; ``bridges.py`` translates the loaded
    configuration into kernel inputs (``InvoicePostingTargets``).

Invariants enforced:
    - Resolved once: the first successful call is cached until
      ``reset_active_config()``.
    - SCHOLARSHIP/ADJUSTMENT can never be routed to a cash/bank account.

Audit relevance:
    Every resolution emits a ``BURSARY_CONFIG_TRACE`` log entry with the
    config id, version, source file and the environment overrides applied.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Mapping
from pathlib import Path

from bursary_config.loader import load_configuration
from bursary_config.schema import BursaryConfiguration
from bursary_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

_active: BursaryConfiguration | None = None
_lock = threading.Lock()


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> BursaryConfiguration:
    """
    Resolve the active configuration (cached after the first call).

    Args:
        config_path: Override the YAML file.  Defaults to sets/default.yaml.
        environ: Environment mapping for overrides.  Defaults to os.environ.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the configuration is invalid.
    """
    global _active
    with _lock:
        if _active is not None:
            return _active

        path = config_path or _DEFAULT_CONFIG_FILE
        config = load_configuration(path, os.environ if environ is None else environ)

        logger.info(
            "BURSARY_CONFIG_TRACE",
            extra={
                "trace_type": "BURSARY_CONFIG_TRACE",
                "config_id": config.config_id,
                "config_version": config.version,
                "source_path": config.source_path,
                "env_overrides": list(config.overrides),
            },
        )
        _active = config
        return config


def reset_active_config() -> None:
    """Drop the cached configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


__all__ = ["BursaryConfiguration", "get_active_config", "reset_active_config"]
