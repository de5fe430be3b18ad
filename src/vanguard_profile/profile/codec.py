"""
Wire shape of a stored profile.

The host platforms' serializers can't carry arbitrary maps, so the blob is a
flat JSON object of primitives and lists:

- stat levels travel as two parallel lists, `statLevelKeys[i]` <-> `statLevelValues[i]`
- ad counters travel as one int field per pack, `adsWatchedFor<PackId>`

Blobs written by the original client use a few older field names
(`version`, `totalGold`, ...); those are accepted on read, never written.
"""
from __future__ import annotations
import json
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from vanguard_profile.core.clock import parse_timestamp
from vanguard_profile.core.errors import CorruptData
from vanguard_profile.core.logging import get_logger
from vanguard_profile.profile.record import PRIMARY_STARTER, HighScores, ProfileRecord, is_valid_pack_id

_log = get_logger("profile.codec")

AD_COUNTER_PREFIX = "adsWatchedFor"

def ad_counter_field(pack_id: str) -> str:
    return AD_COUNTER_PREFIX + pack_id[:1].upper() + pack_id[1:]

def pack_id_from_field(name: str) -> str:
    rest = name[len(AD_COUNTER_PREFIX):]
    return rest[:1].lower() + rest[1:]

class StoredProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    schemaVersion: int = Field(0, validation_alias=AliasChoices("schemaVersion", "version"))
    goldBalance: int = Field(0, validation_alias=AliasChoices("goldBalance", "totalGold"))
    unlockedCharacters: List[str] = Field(default_factory=list,
                                          validation_alias=AliasChoices("unlockedCharacters", "unlockedCharacterIDs"))
    selectedCharacter: Optional[str] = Field(None, validation_alias=AliasChoices("selectedCharacter", "selectedCharacterID"))
    statLevelKeys: List[str] = Field(default_factory=list)
    statLevelValues: List[int] = Field(default_factory=list)
    longestSurvivalSeconds: int = Field(0, validation_alias=AliasChoices("longestSurvivalSeconds", "longestSurvivalTime"))
    highestKillCount: int = 0
    highestLevelReached: int = 0
    mostGoldInRun: int = 0
    lastAdWatchedAt: Optional[str] = Field(None, validation_alias=AliasChoices("lastAdWatchedAt", "lastAdWatchedTime"))
    adsRemoved: bool = False


def _stat_levels(stored: StoredProfile) -> Dict[str, int]:
    keys, values = stored.statLevelKeys, stored.statLevelValues
    if len(keys) != len(values):
        n = min(len(keys), len(values))
        _log.warning(
            f"corrupt stat levels: {len(keys)} keys vs {len(values)} values, truncating to {n}",
            extra={"stage": "profile.codec.corrupt", "field": "statLevelKeys", "status": "repaired"},
        )
        keys, values = keys[:n], values[:n]
    levels: Dict[str, int] = {}
    for k, v in zip(keys, values):
        levels.setdefault(k, v)   # first occurrence wins
    return levels

def _ad_counters(extra: Dict[str, Any]) -> Dict[str, int]:
    counters: Dict[str, int] = {}
    for name, value in extra.items():
        if not name.startswith(AD_COUNTER_PREFIX) or name == AD_COUNTER_PREFIX:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise CorruptData(f"ad counter {name} is not an integer: {value!r}")
        pack_id = pack_id_from_field(name)
        if not is_valid_pack_id(pack_id) or ad_counter_field(pack_id) != name:
            _log.warning(f"skipping ad counter field {name!r}: no valid pack id",
                         extra={"stage": "profile.codec.corrupt", "field": name, "status": "skipped"})
            continue
        counters[pack_id] = value
    return counters


def decode(raw: bytes) -> ProfileRecord:
    """Blob -> record. Raises CorruptData when it can't be read; does not validate invariants."""
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptData(f"profile blob is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise CorruptData(f"profile blob is a {type(data).__name__}, expected an object")
    try:
        stored = StoredProfile.model_validate(data)
    except ValidationError as e:
        raise CorruptData(f"profile blob has invalid fields: {e.error_count()} error(s)") from e

    last_ad = None
    if stored.lastAdWatchedAt:
        last_ad = parse_timestamp(stored.lastAdWatchedAt)
        if last_ad is None:
            _log.warning(f"unparsable lastAdWatchedAt {stored.lastAdWatchedAt!r}, treating as never watched",
                         extra={"stage": "profile.codec", "field": "lastAdWatchedAt"})

    return ProfileRecord(
        schemaVersion=stored.schemaVersion,
        goldBalance=stored.goldBalance,
        unlockedCharacters=set(stored.unlockedCharacters),
        selectedCharacter=stored.selectedCharacter or PRIMARY_STARTER,
        statLevels=_stat_levels(stored),
        highScores=HighScores(
            longestSurvivalSeconds=stored.longestSurvivalSeconds,
            highestKillCount=stored.highestKillCount,
            highestLevelReached=stored.highestLevelReached,
            mostGoldInRun=stored.mostGoldInRun,
        ),
        adWatchCounters=_ad_counters(stored.model_extra or {}),
        lastAdWatchedAt=last_ad,
        adsRemoved=stored.adsRemoved,
    )


def encode(record: ProfileRecord) -> bytes:
    keys = sorted(record.statLevels)
    hs = record.highScores
    payload: Dict[str, Any] = {
        "schemaVersion": record.schemaVersion,
        "goldBalance": record.goldBalance,
        "unlockedCharacters": sorted(record.unlockedCharacters),
        "selectedCharacter": record.selectedCharacter,
        "statLevelKeys": keys,
        "statLevelValues": [record.statLevels[k] for k in keys],
        "longestSurvivalSeconds": hs.longestSurvivalSeconds,
        "highestKillCount": hs.highestKillCount,
        "highestLevelReached": hs.highestLevelReached,
        "mostGoldInRun": hs.mostGoldInRun,
    }
    for pack_id in sorted(record.adWatchCounters):
        payload[ad_counter_field(pack_id)] = record.adWatchCounters[pack_id]
    payload["lastAdWatchedAt"] = record.lastAdWatchedAt.isoformat() if record.lastAdWatchedAt else ""
    payload["adsRemoved"] = record.adsRemoved
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
