from __future__ import annotations
import re
from datetime import datetime
from typing import Dict, Optional, Set
from pydantic import BaseModel, Field, field_validator
from vanguard_profile.core.clock import ensure_utc

CURRENT_SCHEMA_VERSION = 2

PRIMARY_STARTER = "knight"
STARTER_CHARACTERS = ("knight", "pyromancer")   # always unlocked, never purchasable
DEFAULT_STATS = ("vitality", "might", "greaves", "magnet")
DEFAULT_AD_PACKS = ("pack1", "pack2")

def normalize_character_id(character_id: str) -> str:
    return (character_id or "").strip().lower()

# lower-camel, so the `adsWatchedFor<PackId>` wire field maps back to exactly one id
_PACK_ID_RE = re.compile(r"[a-z][A-Za-z0-9]*")

def is_valid_pack_id(pack_id: str) -> bool:
    return isinstance(pack_id, str) and _PACK_ID_RE.fullmatch(pack_id) is not None

class HighScores(BaseModel):
    longestSurvivalSeconds: int = 0
    highestKillCount: int = 0
    highestLevelReached: int = 0
    mostGoldInRun: int = 0

class ProfileRecord(BaseModel):
    """Everything persisted about one player's progress."""
    schemaVersion: int = CURRENT_SCHEMA_VERSION
    goldBalance: int = 0
    unlockedCharacters: Set[str] = Field(default_factory=set)
    selectedCharacter: str = PRIMARY_STARTER
    statLevels: Dict[str, int] = Field(default_factory=dict)   # sparse: absent key == level 0
    highScores: HighScores = Field(default_factory=HighScores)
    adWatchCounters: Dict[str, int] = Field(default_factory=dict)
    lastAdWatchedAt: Optional[datetime] = None
    adsRemoved: bool = False

    @field_validator("lastAdWatchedAt")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("adWatchCounters")
    @classmethod
    def _pack_ids(cls, v: Dict[str, int]) -> Dict[str, int]:
        bad = [k for k in v if not is_valid_pack_id(k)]
        if bad:
            raise ValueError(f"invalid ad pack ids: {bad}")
        return v

    # ---- stat levels ----
    def get_stat_level(self, key: str) -> int:
        return self.statLevels.get(key, 0)

    def set_stat_level(self, key: str, value: int):
        self.statLevels[key] = int(value)

    # ---- high scores ----
    def update_high_scores(self, survival_seconds: int, kills: int, level: int, gold_in_run: int) -> bool:
        """Replace each tracked maximum the candidate strictly beats. True if any changed."""
        hs = self.highScores
        new_record = False
        if survival_seconds > hs.longestSurvivalSeconds:
            hs.longestSurvivalSeconds = int(survival_seconds)
            new_record = True
        if kills > hs.highestKillCount:
            hs.highestKillCount = int(kills)
            new_record = True
        if level > hs.highestLevelReached:
            hs.highestLevelReached = int(level)
            new_record = True
        if gold_in_run > hs.mostGoldInRun:
            hs.mostGoldInRun = int(gold_in_run)
            new_record = True
        return new_record

    # ---- characters ----
    def is_character_unlocked(self, character_id: str) -> bool:
        return normalize_character_id(character_id) in self.unlockedCharacters

    def unlock_character(self, character_id: str):
        cid = normalize_character_id(character_id)
        if cid:
            self.unlockedCharacters.add(cid)

    # ---- ads ----
    def get_ad_watch_count(self, pack_id: str) -> int:
        return self.adWatchCounters.get(pack_id, 0)


def create_default() -> ProfileRecord:
    return ProfileRecord(
        schemaVersion=CURRENT_SCHEMA_VERSION,
        goldBalance=0,
        unlockedCharacters=set(STARTER_CHARACTERS),
        selectedCharacter=PRIMARY_STARTER,
        statLevels={k: 0 for k in DEFAULT_STATS},
        adWatchCounters={p: 0 for p in DEFAULT_AD_PACKS},
    )
