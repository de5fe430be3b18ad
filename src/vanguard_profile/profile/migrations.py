"""
Schema upgrades and invariant repair for loaded profiles.

Each step takes a record at version N and leaves it valid for version N+1;
`validate` bumps `schemaVersion` after every step, so a crash mid-way can never
leave a record tagged with a version whose shape it doesn't have.
"""
from typing import Callable, Dict
from vanguard_profile.core.logging import get_logger
from vanguard_profile.profile.record import (
    CURRENT_SCHEMA_VERSION, PRIMARY_STARTER, STARTER_CHARACTERS,
    ProfileRecord, normalize_character_id,
)

_log = get_logger("profile.migrations")

RETIRED_STATS = ("luck",)

def _normalize_ids(r: ProfileRecord):
    r.unlockedCharacters = {cid for cid in map(normalize_character_id, r.unlockedCharacters) if cid}
    r.selectedCharacter = normalize_character_id(r.selectedCharacter)

def _v0_to_v1(r: ProfileRecord):
    # early builds stored display-cased ids ("Knight")
    _normalize_ids(r)

def _v1_to_v2(r: ProfileRecord):
    # luck overlapped with the in-run Lucky Coins upgrade
    for key in RETIRED_STATS:
        r.statLevels.pop(key, None)

MIGRATIONS: Dict[int, Callable[[ProfileRecord], None]] = {
    0: _v0_to_v1,
    1: _v1_to_v2,
}

def _clamp(v: int) -> int:
    return v if v > 0 else 0

def validate(record: ProfileRecord) -> ProfileRecord:
    """Return a migrated, repaired copy of `record`. Idempotent."""
    r = record.model_copy(deep=True)

    if r.schemaVersion < 0:
        r.schemaVersion = 0
    while r.schemaVersion < CURRENT_SCHEMA_VERSION:
        step = MIGRATIONS[r.schemaVersion]
        _log.info(f"migrating profile v{r.schemaVersion} -> v{r.schemaVersion + 1}", extra={"stage": "profile.migrate"})
        step(r)
        r.schemaVersion += 1

    # ids are lower-case at every version
    _normalize_ids(r)

    for starter in STARTER_CHARACTERS:
        if starter not in r.unlockedCharacters:
            r.unlockedCharacters.add(starter)

    if r.selectedCharacter not in r.unlockedCharacters:
        _log.warning(f"selected character {r.selectedCharacter!r} is locked, resetting",
                     extra={"stage": "profile.validate", "field": "selectedCharacter"})
        r.selectedCharacter = PRIMARY_STARTER

    r.goldBalance = _clamp(r.goldBalance)
    r.statLevels = {k: _clamp(v) for k, v in r.statLevels.items()}
    r.adWatchCounters = {k: _clamp(v) for k, v in r.adWatchCounters.items()}
    hs = r.highScores
    hs.longestSurvivalSeconds = _clamp(hs.longestSurvivalSeconds)
    hs.highestKillCount = _clamp(hs.highestKillCount)
    hs.highestLevelReached = _clamp(hs.highestLevelReached)
    hs.mostGoldInRun = _clamp(hs.mostGoldInRun)
    return r
