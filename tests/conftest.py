import asyncio
import json
from datetime import datetime, timezone
import pytest
import redis

from vanguard_profile.profile.store import ProfileStore
from vanguard_profile.storage.backends import CloudBackend, LocalBackend


class FakeRedis:
    """Dict-backed stand-in for the two redis-py calls the cloud backend makes."""
    def __init__(self):
        self.data = {}
        self.fail_writes = False
        self.fail_reads = 0   # number of upcoming gets that raise

    def get(self, key):
        if self.fail_reads:
            self.fail_reads -= 1
            raise redis.exceptions.ConnectionError("redis down")
        return self.data.get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise ConnectionError("redis down")
        self.data[key] = value
        return True


T0 = datetime(2026, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def local_backend(tmp_path):
    return LocalBackend(tmp_path / "profile")


@pytest.fixture()
def store(local_backend):
    return ProfileStore(local_backend)


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def cloud_backend(fake_redis):
    backend = CloudBackend(fake_redis, session_id="player-1")
    yield backend
    backend.close()


def stored_json(backend: LocalBackend) -> dict:
    return json.loads(backend.path.read_text(encoding="utf-8"))


class ScriptedAds:
    def __init__(self, result=True, error=None, delay=0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = 0

    async def show_rewarded_ad(self) -> bool:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result
