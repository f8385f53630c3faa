"""Default logger used when the host does not inject one."""

from __future__ import annotations

from typing import Any

import structlog


def _drop_event(_: Any, __: str, ___: dict[str, Any]) -> dict[str, Any]:
    """Discard every event before it reaches the output logger."""
    raise structlog.DropEvent


NOOP_LOGGER = structlog.wrap_logger(
    structlog.ReturnLogger(),
    processors=[_drop_event],
    wrapper_class=structlog.BoundLogger,
)
