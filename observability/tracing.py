"""Simple span helper for recording suspension-point timings."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List


@contextmanager
def span(events: List[Dict[str, Any]], name: str, **fields: Any) -> Iterator[None]:
    start = time.monotonic()
    try:
        yield
    finally:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        events.append({"span": name, "ms": elapsed_ms, **fields})


__all__ = ["span"]
