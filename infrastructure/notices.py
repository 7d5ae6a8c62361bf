"""
Transient user-facing notices.

The editor shows at most one notice at a time. Posting replaces the
current notice; each notice carries its own expiry (or none, for notices
that stay until cleared, like the amount limit message).

The clock is injectable so expiry can be tested without sleeping.
"""
import logging
import time
from enum import Enum
from typing import Callable, Optional

import msgspec

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


class Notice(msgspec.Struct, kw_only=True, frozen=True):
    text: str
    level: NoticeLevel = NoticeLevel.INFO
    posted_at: float
    expires_at: Optional[float] = None   # None = until cleared or replaced

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class NoticeBoard:
    """
    Holds the single current notice.

    Usage:
        board = NoticeBoard()
        board.post("PayPal already exists!", ttl=1.0, level=NoticeLevel.ERROR)
        board.text     # "PayPal already exists!" for one second, then None
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._notice: Optional[Notice] = None

    def post(self, text: str, ttl: Optional[float] = None, level: NoticeLevel = NoticeLevel.INFO) -> Notice:
        """Replace the current notice. `ttl` is in seconds; None keeps it until cleared."""
        now = self._clock()
        notice = Notice(
            text=text,
            level=level,
            posted_at=now,
            expires_at=now + ttl if ttl is not None else None,
        )
        self._notice = notice
        logger.debug("Notice (%s): %s", level.value, text)
        return notice

    def clear(self) -> None:
        self._notice = None

    @property
    def current(self) -> Optional[Notice]:
        """The live notice, or None once it has expired."""
        if self._notice is not None and self._notice.is_expired(self._clock()):
            self._notice = None
        return self._notice

    @property
    def text(self) -> Optional[str]:
        notice = self.current
        return notice.text if notice else None
