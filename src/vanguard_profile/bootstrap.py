"""
Composition root: the host application builds the profile services once here
and passes them to whatever needs them.
"""
from dataclasses import dataclass
from typing import Any, Optional
from dotenv import load_dotenv
from vanguard_profile.ads.cooldown import AdCooldownGate
from vanguard_profile.ads.flow import AdService, RewardedAdFlow
from vanguard_profile.core.config import StoreConfig
from vanguard_profile.core.logging import get_logger, setup_logging
from vanguard_profile.profile.store import ProfileStore
from vanguard_profile.storage.backends import get_backend

log = get_logger("bootstrap")

@dataclass
class ProfileServices:
    config: StoreConfig
    store: ProfileStore
    gate: AdCooldownGate
    ads: Optional[RewardedAdFlow] = None

    def close(self):
        self.store.persist()
        self.store.backend.close()

def build_store(config: StoreConfig, redis_client: Any = None) -> ProfileStore:
    return ProfileStore(get_backend(config, redis_client=redis_client))

def bootstrap(
    config: Optional[StoreConfig] = None,
    ad_service: Optional[AdService] = None,
    redis_client: Any = None,
    env_file: Optional[str] = ".env",
) -> ProfileServices:
    if env_file:
        load_dotenv(env_file)
    config = config or StoreConfig()
    setup_logging(config.log_level)
    store = build_store(config, redis_client=redis_client)
    ads = RewardedAdFlow(ad_service, config.ad_timeout_seconds) if ad_service is not None else None
    services = ProfileServices(config=config, store=store, gate=AdCooldownGate(config.ad_cooldown_seconds), ads=ads)
    log.info(
        f"profile services ready: platform={config.resolved_platform()} cloud={store.backend.supports_cloud()}",
        extra={"stage": "bootstrap"},
    )
    return services
