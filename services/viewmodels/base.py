"""Common view-model plumbing: render state and stale-response guarding."""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    CONTENT = "content"


class ViewModel:
    """Base for per-session view-models.

    Gateway calls are blocking, so they run in a worker thread via
    ``asyncio.to_thread``; all state is mutated on the event loop between
    awaits. Every fetch takes a generation number on a named channel and a
    result whose generation is no longer current is dropped.
    """

    def __init__(self, gateway):
        self.gateway = gateway
        self.state = ViewState.LOADING
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self._generations: Dict[str, int] = {}

    def _begin(self, channel: str = "default") -> int:
        self._generations[channel] = self._generations.get(channel, 0) + 1
        return self._generations[channel]

    def _is_stale(self, generation: int, channel: str = "default") -> bool:
        current = self._generations.get(channel, 0)
        if generation != current:
            logger.debug(f"{type(self).__name__}: dropping stale {channel} response "
                         f"(generation {generation}, current {current})")
            return True
        return False

    async def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        return await asyncio.to_thread(fn, *args, **kwargs)

    @property
    def is_loading(self) -> bool:
        return self.state is ViewState.LOADING

    def pop_notice(self) -> Optional[str]:
        notice, self.notice = self.notice, None
        return notice
