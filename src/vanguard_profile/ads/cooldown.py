from __future__ import annotations
from datetime import datetime
from vanguard_profile.core.clock import Timestamp, ensure_utc, parse_timestamp

DEFAULT_WINDOW_SECONDS = 60

class AdCooldownGate:
    """
    Rewarded-ad eligibility as a pure function of the last watch time and a
    caller-supplied `now`. No clock is read here.
    """
    def __init__(self, window_seconds: int = DEFAULT_WINDOW_SECONDS):
        self.window_seconds = int(window_seconds)

    def remaining_cooldown_seconds(self, last_watched_at: Timestamp, now: datetime) -> int:
        last = parse_timestamp(last_watched_at)
        if last is None:
            return 0
        elapsed = int((ensure_utc(now) - last).total_seconds())
        # a watch time in the future (clock moved back) waits one full window at most
        return min(self.window_seconds, max(0, self.window_seconds - elapsed))

    def can_watch(self, last_watched_at: Timestamp, now: datetime) -> bool:
        return self.remaining_cooldown_seconds(last_watched_at, now) == 0
