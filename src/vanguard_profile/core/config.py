from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os

PLATFORM_LOCAL = "local"
PLATFORM_CLOUD = "cloud"
PLATFORM_AUTO = "auto"

def _env_path(name: str, default: str) -> Path:
    return Path(os.getenv(name, default))

@dataclass
class StoreConfig:
    platform: str = field(default_factory=lambda: os.getenv("PROFILE_PLATFORM", PLATFORM_AUTO).strip().lower())
    data_dir: Path = field(default_factory=lambda: _env_path("PROFILE_DATA_DIR", "data/profile"))
    redis_url: Optional[str] = field(default_factory=lambda: os.getenv("REDIS_URL") or None)
    session_id: str = field(default_factory=lambda: os.getenv("PROFILE_SESSION_ID", "local"))
    namespace: str = field(default_factory=lambda: os.getenv("PROFILE_NAMESPACE", "vanguard"))
    ad_cooldown_seconds: int = field(default_factory=lambda: int(os.getenv("AD_COOLDOWN_SECONDS", "60")))
    ad_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("AD_TIMEOUT_SECONDS", "120")))
    log_level: str = field(default_factory=lambda: os.getenv("APP_LOG_LEVEL", "INFO"))

    def resolved_platform(self) -> str:
        """Runtime platform flag: `auto` means cloud when a Redis URL is configured."""
        if self.platform in (PLATFORM_LOCAL, PLATFORM_CLOUD):
            return self.platform
        return PLATFORM_CLOUD if self.redis_url else PLATFORM_LOCAL
