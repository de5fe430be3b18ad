import json
import logging
import random
from datetime import timedelta

from conftest import T0, stored_json
from vanguard_profile.profile.codec import decode
from vanguard_profile.profile.record import PRIMARY_STARTER, STARTER_CHARACTERS, create_default
from vanguard_profile.profile.store import ProfileStore
from vanguard_profile.storage.backends import CloudBackend


class CountingBackend:
    def __init__(self, blob=None):
        self.blob = blob
        self.loads = 0
        self.saves = 0

    def load(self):
        self.loads += 1
        return self.blob

    def save(self, raw):
        self.saves += 1
        self.blob = raw

    def supports_cloud(self):
        return False

    def close(self):
        pass


def test_fresh_install_bootstraps_and_persists_default(store, local_backend):
    r = store.current()
    assert r.goldBalance == 0
    assert set(STARTER_CHARACTERS) <= r.unlockedCharacters
    assert r.selectedCharacter == PRIMARY_STARTER
    assert r.highScores.longestSurvivalSeconds == 0
    assert decode(local_backend.load()) == r


def test_cache_serves_reads_without_touching_backend():
    backend = CountingBackend()
    store = ProfileStore(backend)
    store.current()
    store.current()
    store.current()
    assert backend.loads == 1
    assert backend.saves == 1   # first-run bootstrap only


def test_reload_rereads_backend():
    backend = CountingBackend()
    store = ProfileStore(backend)
    store.add_gold(10)
    other = ProfileStore(backend)
    other.add_gold(5)
    assert store.current().goldBalance == 10
    store.reload()
    assert store.current().goldBalance == 15
    assert backend.loads == 3


def test_spend_more_than_balance_fails_without_change(store):
    store.add_gold(50)
    assert store.spend_gold(100) is False
    assert store.current().goldBalance == 50


def test_add_then_spend(store, local_backend):
    store.add_gold(200)
    assert store.spend_gold(150) is True
    assert store.current().goldBalance == 50
    assert stored_json(local_backend)["goldBalance"] == 50


def test_non_positive_amounts_are_rejected(store):
    store.add_gold(-10)
    store.add_gold(0)
    assert store.spend_gold(-5) is False
    assert store.current().goldBalance == 0


def test_gold_never_goes_negative():
    store = ProfileStore(CountingBackend())
    rng = random.Random(7)
    for _ in range(200):
        if rng.random() < 0.5:
            store.add_gold(rng.randint(0, 100))
        else:
            before = store.current().goldBalance
            amount = rng.randint(0, 150)
            ok = store.spend_gold(amount)
            assert ok == (amount <= before)
        assert store.current().goldBalance >= 0


def test_session_results_keep_maxima():
    store = ProfileStore(CountingBackend())
    assert store.record_session_result(120, 30, 5, 80) is True
    assert store.record_session_result(90, 40, 5, 200) is True
    hs = store.current().highScores
    assert (hs.longestSurvivalSeconds, hs.highestKillCount, hs.highestLevelReached, hs.mostGoldInRun) == (120, 40, 5, 200)
    assert store.record_session_result(1, 1, 1, 1) is False


def test_high_scores_are_monotonic():
    store = ProfileStore(CountingBackend())
    rng = random.Random(3)
    prev = store.current().highScores
    for _ in range(100):
        store.record_session_result(rng.randint(0, 600), rng.randint(0, 500), rng.randint(0, 30), rng.randint(0, 900))
        cur = store.current().highScores
        assert cur.longestSurvivalSeconds >= prev.longestSurvivalSeconds
        assert cur.highestKillCount >= prev.highestKillCount
        assert cur.highestLevelReached >= prev.highestLevelReached
        assert cur.mostGoldInRun >= prev.mostGoldInRun
        prev = cur


def test_select_locked_character_fails(store):
    assert store.select_character("ranger") is False
    assert store.current().selectedCharacter == PRIMARY_STARTER
    store.unlock_character("Ranger")
    assert store.select_character("RANGER") is True
    assert store.current().selectedCharacter == "ranger"


def test_unlock_invariant_survives_operations_and_restart(local_backend):
    store = ProfileStore(local_backend)
    store.unlock_character("ranger")
    store.select_character("ranger")
    store.select_character("ghost")
    store.add_gold(30)
    restarted = ProfileStore(local_backend)
    r = restarted.current()
    assert set(STARTER_CHARACTERS) <= r.unlockedCharacters
    assert r.selectedCharacter in r.unlockedCharacters
    assert r.selectedCharacter == "ranger"


def test_snapshots_cannot_mutate_live_record(store, local_backend):
    snap = store.current()
    snap.goldBalance = 9999
    snap.unlockedCharacters.add("ghost")
    assert store.current().goldBalance == 0
    assert not store.current().is_character_unlocked("ghost")
    assert stored_json(local_backend)["goldBalance"] == 0


def test_stat_levels_never_decrease(store):
    assert store.set_stat_level("might", 3) is True
    assert store.set_stat_level("might", 1) is False
    assert store.set_stat_level("might", 3) is True
    assert store.current().get_stat_level("might") == 3


def test_purchase_stat_upgrade_is_one_write():
    backend = CountingBackend()
    store = ProfileStore(backend)
    store.add_gold(100)
    saves = backend.saves
    assert store.purchase_stat_upgrade("might", 100) is True
    assert backend.saves == saves + 1
    r = store.current()
    assert r.goldBalance == 0
    assert r.get_stat_level("might") == 1
    assert store.purchase_stat_upgrade("might", 150) is False
    assert store.current().get_stat_level("might") == 1


def test_purchase_character_charges_once(store):
    store.add_gold(500)
    assert store.purchase_character("Ranger", 300) is True
    assert store.purchase_character("ranger", 300) is True
    assert store.current().goldBalance == 200
    assert store.purchase_character("necromancer", 1000) is False
    assert not store.current().is_character_unlocked("necromancer")


def test_ads_removed_is_one_way(store):
    store.set_ads_removed()
    store.set_ads_removed()
    assert store.current().adsRemoved is True


def test_ad_watch_timestamp_only_moves_forward(store):
    assert store.record_ad_watched("pack1", T0) == 1
    assert store.record_ad_watched("pack1", T0 - timedelta(minutes=5)) == 2
    r = store.current()
    assert r.lastAdWatchedAt == T0
    assert r.get_ad_watch_count("pack1") == 2


def test_ad_watch_reward_is_credited_in_same_write():
    backend = CountingBackend()
    store = ProfileStore(backend)
    store.current()
    saves = backend.saves
    store.record_ad_watched("pack2", T0, reward_gold=4990)
    assert backend.saves == saves + 1
    assert store.current().goldBalance == 4990


def test_corrupt_blob_falls_back_to_default_and_logs(local_backend, caplog):
    local_backend.path.write_bytes(b"{definitely not json")
    store = ProfileStore(local_backend)
    with caplog.at_level(logging.ERROR):
        r = store.current()
    assert r == create_default()
    assert any(getattr(rec, "stage", None) == "profile.reset_to_default" for rec in caplog.records)
    # the unreadable blob is kept until the next real write
    assert local_backend.path.read_bytes() == b"{definitely not json"
    store.add_gold(5)
    assert stored_json(local_backend)["goldBalance"] == 5


def test_mismatched_stat_sequences_load_with_defaults(local_backend, caplog):
    local_backend.path.write_text(json.dumps({
        "schemaVersion": 2,
        "goldBalance": 70,
        "unlockedCharacters": ["knight", "pyromancer"],
        "selectedCharacter": "knight",
        "statLevelKeys": ["might", "vitality"],
        "statLevelValues": [2],
    }), encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        r = ProfileStore(local_backend).current()
    assert r.goldBalance == 70
    assert r.get_stat_level("might") == 2
    assert r.get_stat_level("vitality") == 0
    assert any(getattr(rec, "stage", None) == "profile.codec.corrupt" for rec in caplog.records)


def test_legacy_blob_is_migrated_on_load(local_backend):
    local_backend.path.write_text(json.dumps({
        "version": 0,
        "totalGold": 42,
        "unlockedCharacterIDs": ["Knight", "Ranger"],
        "selectedCharacterID": "Ranger",
        "statLevelKeys": ["luck", "magnet"],
        "statLevelValues": [4, 2],
    }), encoding="utf-8")
    r = ProfileStore(local_backend).current()
    assert r.goldBalance == 42
    assert r.selectedCharacter == "ranger"
    assert r.statLevels == {"magnet": 2}


def test_reset_replaces_and_persists(store, local_backend):
    store.add_gold(300)
    store.unlock_character("ranger")
    store.reset()
    assert store.current() == create_default()
    assert stored_json(local_backend)["goldBalance"] == 0


def test_cloud_store_round_trip(cloud_backend, fake_redis):
    store = ProfileStore(cloud_backend)
    store.add_gold(25)
    store.unlock_character("ranger")
    cloud_backend.flush()
    fresh = ProfileStore(cloud_backend)
    r = fresh.current()
    assert r.goldBalance == 25
    assert r.is_character_unlocked("ranger")


def test_unreachable_cloud_at_load_never_overwrites_stored_profile(cloud_backend, fake_redis, caplog):
    seed = ProfileStore(cloud_backend)
    seed.add_gold(5000)
    seed.unlock_character("ranger")
    seed.record_session_result(900, 900, 900, 900)
    cloud_backend.flush()
    before = dict(fake_redis.data)

    fake_redis.fail_reads = 2
    store = ProfileStore(cloud_backend)
    with caplog.at_level(logging.ERROR):
        assert store.current().goldBalance == 0
    assert store.unsynced
    assert any(getattr(r, "stage", None) == "profile.offline" for r in caplog.records)
    store.add_gold(1)
    cloud_backend.flush()
    assert fake_redis.data == before

    # storage is back: the next operation loads the real profile and writes on top of it
    store.add_gold(1)
    cloud_backend.flush()
    assert not store.unsynced
    r = ProfileStore(cloud_backend).current()
    assert r.goldBalance == 5001
    assert r.is_character_unlocked("ranger")
    assert r.highScores.highestKillCount == 900


def test_store_survives_writes_after_backend_close(fake_redis):
    backend = CloudBackend(fake_redis, session_id="player-1")
    store = ProfileStore(backend)
    store.add_gold(10)
    backend.close()
    store.add_gold(1)
    assert store.current().goldBalance == 11


def test_mixed_case_character_ids_are_normalized_on_load(local_backend):
    local_backend.save(json.dumps({
        "schemaVersion": 2,
        "unlockedCharacters": ["knight", "pyromancer", "Ranger"],
        "selectedCharacter": "Ranger",
    }).encode("utf-8"))
    store = ProfileStore(local_backend)
    r = store.current()
    assert "ranger" in r.unlockedCharacters and "Ranger" not in r.unlockedCharacters
    assert r.selectedCharacter == "ranger"
    assert store.select_character("ranger")


def test_invalid_pack_id_is_not_counted(store):
    assert store.record_ad_watched("pack1", T0) == 1
    assert store.record_ad_watched("Pack1", T0) == 0
    assert store.record_ad_watched("", T0) == 0
    counters = store.current().adWatchCounters
    assert counters["pack1"] == 1
    assert "Pack1" not in counters and "" not in counters
