from __future__ import annotations
import os
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional, Protocol
import redis
from vanguard_profile.core.config import PLATFORM_CLOUD, StoreConfig
from vanguard_profile.core.errors import CorruptData, StorageUnavailable
from vanguard_profile.core.logging import get_logger

_log = get_logger("storage")

# Must never change between releases, or existing players lose their profile.
PROFILE_KEY = "PixelVanguard_SaveData"

class PersistenceBackend(Protocol):
    def load(self) -> Optional[bytes]: ...
    def save(self, raw: bytes) -> None: ...
    def supports_cloud(self) -> bool: ...
    def close(self) -> None: ...


class LocalBackend:
    """Device-local storage: one JSON file named after the profile key."""
    def __init__(self, base: Path, key: str = PROFILE_KEY):
        self.base = Path(base)
        self.key = key
        self.base.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.base / f"{self.key}.json"

    def load(self) -> Optional[bytes]:
        p = self.path
        if not p.exists():
            return None
        try:
            return p.read_bytes()
        except OSError as e:
            raise CorruptData(f"cannot read {p}: {e}") from e

    def save(self, raw: bytes) -> None:
        p = self.path
        tmp = p.with_name(p.name + ".tmp")
        tmp.write_bytes(raw)
        os.replace(tmp, p)
        _log.debug(f"saved {len(raw)} bytes", extra={"stage": "storage.local.save", "backend": "local", "key": self.key})

    def supports_cloud(self) -> bool:
        return False

    def close(self) -> None:
        pass


class CloudBackend:
    """
    Redis-backed storage scoped to the player's session.

    Loads are synchronous. Saves are queued on a single worker thread and the
    call returns at once; one worker keeps writes in submission order, so the
    newest full profile always lands last. Failed writes are logged, not retried.
    """
    def __init__(self, client: Any, session_id: str, namespace: str = "vanguard", key: str = PROFILE_KEY):
        self.r = client
        self.key = f"{namespace}:{session_id}:{key}"
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cloud-save")

    @classmethod
    def from_url(cls, url: str, session_id: str, namespace: str = "vanguard") -> "CloudBackend":
        return cls(redis.from_url(url), session_id, namespace)

    def load(self) -> Optional[bytes]:
        try:
            v = self.r.get(self.key)
        except redis.exceptions.ResponseError as e:
            raise CorruptData(f"unreadable value at {self.key}: {e}") from e
        except redis.exceptions.RedisError as e:
            raise StorageUnavailable(f"redis unavailable: {e}") from e
        if v is None:
            return None
        return v.encode("utf-8") if isinstance(v, str) else bytes(v)

    def save(self, raw: bytes) -> None:
        try:
            fut = self._pool.submit(self.r.set, self.key, raw)
        except RuntimeError as e:
            # executor already shut down by close()
            _log.error(f"cloud save dropped, backend closed: {e}",
                       extra={"stage": "storage.cloud.closed", "backend": "cloud", "key": self.key, "status": "dropped"})
            return
        fut.add_done_callback(self._on_saved)

    def _on_saved(self, fut: Future):
        err = fut.exception()
        if err is not None:
            _log.error(f"cloud save failed: {err}",
                       extra={"stage": "storage.cloud.save_failed", "backend": "cloud", "key": self.key, "status": "error"})
        else:
            _log.debug("cloud save accepted", extra={"stage": "storage.cloud.save", "backend": "cloud", "key": self.key, "status": "ok"})

    def flush(self):
        """Block until every queued save has been handed to Redis."""
        self._pool.submit(lambda: None).result()

    def supports_cloud(self) -> bool:
        return True

    def close(self) -> None:
        self._pool.shutdown(wait=True)


def get_backend(config: StoreConfig, redis_client: Any = None) -> PersistenceBackend:
    platform = config.resolved_platform()
    if platform == PLATFORM_CLOUD:
        if redis_client is not None:
            backend = CloudBackend(redis_client, config.session_id, config.namespace)
        elif config.redis_url:
            backend = CloudBackend.from_url(config.redis_url, config.session_id, config.namespace)
        else:
            raise ValueError("cloud platform selected but REDIS_URL is not set")
    else:
        backend = LocalBackend(config.data_dir)
    _log.info(f"profile backend: {platform}", extra={"stage": "storage.select", "backend": platform})
    return backend
