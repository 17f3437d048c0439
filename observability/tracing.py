"""Simple span helper for recording step timings on a session."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from config.settings import settings


@contextmanager
def span(session, name: str, *, limit: Optional[int] = None) -> Iterator[None]:
    start = time.time()
    try:
        yield
    finally:
        elapsed_ms = int((time.time() - start) * 1000)
        session.events.append({"span": name, "ms": elapsed_ms})
        cap = limit or settings.MAX_SESSION_EVENTS
        if len(session.events) > cap:
            del session.events[: len(session.events) - cap]


__all__ = ["span"]
