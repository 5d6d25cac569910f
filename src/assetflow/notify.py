# notify.py
# Failure notifications for long-running sessions: a bad edit during
# `watch` is reported here instead of ending the process.
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

from .ui.console import Console, get_console

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    message: str


class Notifier:
    """Titled error sink. Keeps what it sent so callers (and tests) can look."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console
        self._lock = threading.Lock()
        self.sent: List[Notification] = []

    @property
    def console(self) -> Console:
        return self._console or get_console()

    def notify(self, title: str, message: str) -> Notification:
        n = Notification(title=title, message=message)
        with self._lock:
            self.sent.append(n)
        logger.error("%s: %s", title, message)
        self.console.print_error(title, message)
        return n