from __future__ import annotations
from datetime import datetime
from typing import Optional
from vanguard_profile.core.clock import ensure_utc
from vanguard_profile.core.errors import CorruptData, StorageUnavailable
from vanguard_profile.core.logging import get_logger
from vanguard_profile.profile.codec import decode, encode
from vanguard_profile.profile.migrations import validate
from vanguard_profile.profile.record import ProfileRecord, create_default, is_valid_pack_id, normalize_character_id
from vanguard_profile.storage.backends import PersistenceBackend

_log = get_logger("profile.store")

class ProfileStore:
    """
    Write-through cache over a PersistenceBackend and the only holder of the live
    ProfileRecord. Reads come from memory; every mutating call changes the record
    and persists it before returning.

    `current()` hands out snapshots, so a change only survives a restart if it
    went through one of the methods below.
    """
    def __init__(self, backend: PersistenceBackend):
        self.backend = backend
        self._record: Optional[ProfileRecord] = None
        # set while the backend is unreachable: the cached record is a stand-in, not stored truth
        self._unsynced = False

    # ---------------- cache ----------------

    def _live(self) -> ProfileRecord:
        if self._record is None or self._unsynced:
            self._record = self._load()
        return self._record

    def _load(self) -> ProfileRecord:
        try:
            raw = self.backend.load()
        except StorageUnavailable as e:
            return self._offline(e)
        except CorruptData as e:
            return self._fallback(e)
        self._unsynced = False
        if raw is None:
            _log.info("no stored profile, creating default", extra={"stage": "profile.first_run"})
            record = create_default()
            self._record = record
            self.persist()
            return record
        try:
            loaded = decode(raw)
        except CorruptData as e:
            return self._fallback(e)
        return validate(loaded)

    def _offline(self, err: Exception) -> ProfileRecord:
        if self._unsynced and self._record is not None:
            return self._record
        _log.error(f"profile storage unreachable, running on an unsaved default: {err}",
                   extra={"stage": "profile.offline", "status": type(err).__name__})
        self._unsynced = True
        return validate(create_default())

    def _fallback(self, err: Exception) -> ProfileRecord:
        _log.error(f"profile unreadable, reset to defaults: {err}",
                   extra={"stage": "profile.reset_to_default", "status": type(err).__name__})
        return validate(create_default())

    @property
    def unsynced(self) -> bool:
        return self._unsynced

    def current(self) -> ProfileRecord:
        return self._live().model_copy(deep=True)

    def persist(self):
        if self._record is None:
            return
        if self._unsynced:
            _log.warning("storage unreachable, save skipped", extra={"stage": "profile.persist_skipped"})
            return
        try:
            self.backend.save(encode(self._record))
        except (OSError, RuntimeError) as e:
            _log.error(f"profile save failed: {e}", extra={"stage": "profile.persist_failed", "status": "error"})

    def reload(self):
        self._record = None
        self._unsynced = False

    def reset(self):
        _log.warning("profile reset requested", extra={"stage": "profile.reset"})
        self._record = create_default()
        self._unsynced = False
        self.persist()

    # ---------------- gold ----------------

    def add_gold(self, amount: int):
        if amount <= 0:
            _log.warning(f"ignoring non-positive gold credit {amount}", extra={"stage": "economy.add_gold"})
            return
        self._live().goldBalance += int(amount)
        self.persist()

    def spend_gold(self, amount: int) -> bool:
        r = self._live()
        if amount < 0:
            _log.warning(f"rejecting negative spend {amount}", extra={"stage": "economy.spend_gold"})
            return False
        if amount > r.goldBalance:
            _log.info(f"insufficient funds: need {amount}, have {r.goldBalance}",
                      extra={"stage": "economy.insufficient_funds"})
            return False
        r.goldBalance -= int(amount)
        self.persist()
        return True

    # ---------------- characters ----------------

    def unlock_character(self, character_id: str):
        r = self._live()
        if r.is_character_unlocked(character_id):
            return
        r.unlock_character(character_id)
        self.persist()

    def select_character(self, character_id: str) -> bool:
        r = self._live()
        cid = normalize_character_id(character_id)
        if not r.is_character_unlocked(cid):
            _log.info(f"cannot select locked character {cid!r}", extra={"stage": "economy.invalid_selection"})
            return False
        r.selectedCharacter = cid
        self.persist()
        return True

    def purchase_character(self, character_id: str, cost: int) -> bool:
        r = self._live()
        if r.is_character_unlocked(character_id):
            return True
        if cost < 0 or cost > r.goldBalance:
            _log.info(f"insufficient funds for {character_id!r}: need {cost}, have {r.goldBalance}",
                      extra={"stage": "economy.insufficient_funds"})
            return False
        r.goldBalance -= int(cost)
        r.unlock_character(character_id)
        self.persist()
        return True

    # ---------------- stats ----------------

    def set_stat_level(self, key: str, value: int) -> bool:
        r = self._live()
        if value < r.get_stat_level(key):
            _log.warning(f"refusing to lower {key} from {r.get_stat_level(key)} to {value}",
                         extra={"stage": "economy.set_stat_level", "field": key})
            return False
        r.set_stat_level(key, value)
        self.persist()
        return True

    def purchase_stat_upgrade(self, key: str, cost: int) -> bool:
        r = self._live()
        if cost < 0 or cost > r.goldBalance:
            _log.info(f"insufficient funds for {key}: need {cost}, have {r.goldBalance}",
                      extra={"stage": "economy.insufficient_funds", "field": key})
            return False
        r.goldBalance -= int(cost)
        r.set_stat_level(key, r.get_stat_level(key) + 1)
        self.persist()
        return True

    # ---------------- results & monetization ----------------

    def record_session_result(self, survival_seconds: int, kills: int, level: int, gold_in_run: int) -> bool:
        new_record = self._live().update_high_scores(survival_seconds, kills, level, gold_in_run)
        self.persist()
        return new_record

    def set_ads_removed(self):
        r = self._live()
        if r.adsRemoved:
            return
        r.adsRemoved = True
        self.persist()

    def record_ad_watched(self, pack_id: str, timestamp: datetime, reward_gold: int = 0) -> int:
        """Count one rewarded ad for `pack_id`, crediting `reward_gold` in the same write."""
        r = self._live()
        if not is_valid_pack_id(pack_id):
            _log.error(f"invalid ad pack id {pack_id!r}, not counted",
                       extra={"stage": "economy.ad_watch", "packId": pack_id, "status": "rejected"})
            return r.get_ad_watch_count(pack_id)
        count = r.get_ad_watch_count(pack_id) + 1
        r.adWatchCounters[pack_id] = count
        ts = ensure_utc(timestamp)
        if r.lastAdWatchedAt is None or ts > r.lastAdWatchedAt:
            r.lastAdWatchedAt = ts
        if reward_gold > 0:
            r.goldBalance += int(reward_gold)
        self.persist()
        return count
