from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel
from vanguard_profile.ads.cooldown import AdCooldownGate
from vanguard_profile.ads.flow import RewardedAdFlow
from vanguard_profile.core.logging import get_logger
from vanguard_profile.profile.store import ProfileStore
from vanguard_profile.shop.catalog import (
    GOLD_PACK_AMOUNT, PRODUCT_GOLD_PACK, PRODUCT_REMOVE_ADS, UPGRADE_BASE_COSTS,
    ad_pack_payout, get_ad_pack, upgrade_cost,
)

_log = get_logger("shop")

AdWatchStatus = Literal["rewarded", "cooldown", "failed", "unknown_pack"]

class AdWatchResult(BaseModel):
    status: AdWatchStatus
    packId: str
    adsWatched: int = 0
    goldEarned: int = 0
    cooldownRemaining: int = 0

def current_upgrade_cost(store: ProfileStore, stat_key: str) -> Optional[int]:
    base = UPGRADE_BASE_COSTS.get(stat_key)
    if base is None:
        return None
    return upgrade_cost(base, store.current().get_stat_level(stat_key))

def buy_upgrade(store: ProfileStore, stat_key: str) -> bool:
    cost = current_upgrade_cost(store, stat_key)
    if cost is None:
        _log.error(f"unknown stat: {stat_key}", extra={"stage": "shop.upgrade", "field": stat_key})
        return False
    ok = store.purchase_stat_upgrade(stat_key, cost)
    if ok:
        _log.info(f"purchased {stat_key} for {cost} gold", extra={"stage": "shop.upgrade", "field": stat_key, "status": "ok"})
    return ok

def buy_character(store: ProfileStore, character_id: str, cost: int) -> bool:
    return store.purchase_character(character_id, cost)

async def watch_ad_for_pack(
    store: ProfileStore,
    flow: RewardedAdFlow,
    pack_id: str,
    now: datetime,
    gate: Optional[AdCooldownGate] = None,
) -> AdWatchResult:
    pack = get_ad_pack(pack_id)
    if pack is None:
        _log.error(f"unknown ad pack {pack_id!r}", extra={"stage": "shop.ad", "packId": pack_id})
        return AdWatchResult(status="unknown_pack", packId=pack_id)

    gate = gate or AdCooldownGate()
    remaining = gate.remaining_cooldown_seconds(store.current().lastAdWatchedAt, now)
    if remaining > 0:
        _log.info(f"ad cooldown: {remaining}s remaining", extra={"stage": "shop.ad.cooldown", "packId": pack_id})
        return AdWatchResult(status="cooldown", packId=pack_id, cooldownRemaining=remaining,
                             adsWatched=store.current().get_ad_watch_count(pack_id))

    if not await flow.run():
        return AdWatchResult(status="failed", packId=pack_id, adsWatched=store.current().get_ad_watch_count(pack_id))

    payout = ad_pack_payout(pack, store.current().get_ad_watch_count(pack_id) + 1)
    count = store.record_ad_watched(pack_id, now, reward_gold=payout)
    _log.info(f"ad watched for {pack_id} ({count}), earned {payout}",
              extra={"stage": "shop.ad", "packId": pack_id, "status": "ok"})
    return AdWatchResult(status="rewarded", packId=pack_id, adsWatched=count, goldEarned=payout)

def apply_purchase(store: ProfileStore, product_id: str, succeeded: bool) -> bool:
    """Grant an IAP product once the purchase network reported the outcome."""
    if not succeeded:
        _log.warning(f"purchase of {product_id} failed or cancelled", extra={"stage": "shop.iap", "status": "failed"})
        return False
    if product_id == PRODUCT_GOLD_PACK:
        store.add_gold(GOLD_PACK_AMOUNT)
    elif product_id == PRODUCT_REMOVE_ADS:
        store.set_ads_removed()
    else:
        _log.error(f"unknown product {product_id}", extra={"stage": "shop.iap", "status": "unknown"})
        return False
    _log.info(f"purchase applied: {product_id}", extra={"stage": "shop.iap", "status": "ok"})
    return True
