from __future__ import annotations
import asyncio
from typing import Protocol
from vanguard_profile.core.logging import get_logger

_log = get_logger("ads.flow")

class AdService(Protocol):
    async def show_rewarded_ad(self) -> bool:
        """True only when the network signalled a reward; False when dismissed."""
        ...

class RewardedAdFlow:
    """
    One rewarded ad at a time. A request made while another is showing is
    rejected (False), not queued. Every request resolves: dismissal, an SDK
    error, or the timeout all come back as False.
    """
    def __init__(self, service: AdService, timeout_seconds: float = 120.0):
        self.service = service
        self.timeout_seconds = timeout_seconds
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def run(self) -> bool:
        if self._in_flight:
            _log.warning("rewarded ad already showing, request rejected", extra={"stage": "ads.rejected"})
            return False
        self._in_flight = True
        try:
            rewarded = await asyncio.wait_for(self.service.show_rewarded_ad(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            _log.warning("rewarded ad timed out", extra={"stage": "ads.timeout", "status": "timeout"})
            return False
        except Exception as e:
            _log.exception(f"ad service error: {e}", extra={"stage": "ads.error", "status": "error"})
            return False
        finally:
            self._in_flight = False
        if not rewarded:
            _log.info("ad dismissed without reward", extra={"stage": "ads.dismissed"})
        return bool(rewarded)
