"""
Logging manager for the Agency CMS service.

Every module obtains its logger through `get_logger()`. Loggers share a single stream handler
configured on first use; a `prefix` such as `[DATABASE]` is prepended to each message so log
lines from one concern can be grepped together.

    logger = get_logger(prefix="[ContentStore]")
    logger.info("Inserted %s into %s", slug, collection)
"""

import logging
import os
import sys
from typing import Any, MutableMapping, Tuple, Union

ROOT_LOGGER_NAME = "agency_cms"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


class PrefixAdapter(logging.LoggerAdapter):
    """Prepends a fixed prefix to every message."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{self.extra['prefix']} {msg}", kwargs


def _configure_root() -> None:
    global _configured
    if _configured:
        return

    root = logging.getLogger(ROOT_LOGGER_NAME)
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    root.propagate = False
    _configured = True


def get_logger(name: str = ROOT_LOGGER_NAME, prefix: str = "") -> Union[logging.Logger, PrefixAdapter]:
    """
    Return a configured logger.

    Args:
        name: Logger name; names outside the `agency_cms` hierarchy are nested under it.
        prefix: Optional tag prepended to every message, e.g. `[DATABASE]`.
    """
    _configure_root()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)
    if prefix:
        return PrefixAdapter(logger, {"prefix": prefix})
    return logger


def set_level(level: str) -> None:
    """Change the level of every Agency CMS logger at runtime."""
    _configure_root()
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(getattr(logging, level.upper(), logging.INFO))
