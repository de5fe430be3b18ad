from dataclasses import dataclass
from typing import Dict, Optional

UPGRADE_COST_GROWTH = 1.5

# stat key -> base gold cost of level 1
UPGRADE_BASE_COSTS: Dict[str, int] = {
    "might": 100,       # damage
    "vitality": 80,     # max HP
    "greaves": 120,     # move speed
    "magnet": 60,       # pickup radius
}

@dataclass(frozen=True)
class AdPack:
    pack_id: str
    ads_required: int
    gold: int

AD_PACKS: Dict[str, AdPack] = {
    "pack1": AdPack("pack1", ads_required=5, gold=1990),
    "pack2": AdPack("pack2", ads_required=10, gold=4990),
}

PRODUCT_GOLD_PACK = "gold_pack"
PRODUCT_REMOVE_ADS = "remove_ads"
GOLD_PACK_AMOUNT = 29900

def upgrade_cost(base_cost: int, current_level: int) -> int:
    return round(base_cost * (UPGRADE_COST_GROWTH ** current_level))

def ad_pack_payout(pack: AdPack, new_count: int) -> int:
    """Gold granted when the counter reaches `new_count`; counters never reset, so every Nth watch pays."""
    if new_count > 0 and new_count % pack.ads_required == 0:
        return pack.gold
    return 0

def get_ad_pack(pack_id: str) -> Optional[AdPack]:
    return AD_PACKS.get(pack_id)
