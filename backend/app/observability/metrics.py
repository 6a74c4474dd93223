"""Lightweight metrics helpers."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict, Iterator, Optional

from app.observability.client import get_opik_client

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Log a metric to Opik if it is enabled."""
    client = get_opik_client()
    if not client:
        return

    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update({key: str(val) if val is not None else None for key, val in metadata.items()})

    try:
        metric_trace = client.trace(name=f"metric:{name}", metadata=payload)
        end = getattr(metric_trace, "end", None)
        if callable(end):
            end()
    except Exception as exc:  # pragma: no cover - SDK failure
        logger.debug("Unable to record metric %s: %s", name, exc)


@contextmanager
def timed(prefix: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
    """
    Record `<prefix>.success` and `<prefix>.latency_ms` around a block.

    The yielded dict can be filled with extra metadata inside the block; it is
    attached to both metrics. Failures record `<prefix>.success = 0` and re-raise.
    """
    extra: Dict[str, Any] = dict(metadata or {})
    start = perf_counter()
    success = False
    try:
        yield extra
        success = True
    finally:
        latency_ms = (perf_counter() - start) * 1000
        log_metric(f"{prefix}.success", 1 if success else 0, metadata=extra)
        log_metric(f"{prefix}.latency_ms", latency_ms, metadata=extra)
