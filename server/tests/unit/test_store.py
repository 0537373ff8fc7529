"""测试 store.py：用量计数、缓存过期、评分、原子写入、损坏恢复。"""

from __future__ import annotations

import json
import time

import pytest

from mandarin_captions.config import PricingConfig
from mandarin_captions.store import UsageStore, estimate_cost, image_hash


class TestHashAndCost:
    """哈希与费用估算。"""

    def test_image_hash_is_sha256(self):
        assert image_hash(b"") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )
        assert image_hash(b"a") != image_hash(b"b")

    def test_estimate_cost(self):
        pricing = PricingConfig(input_per_1k=4.0, output_per_1k=4.0)
        request = {"m": "abcd"}  # json.dumps → 13 字符
        response = {"choices": [{"message": {"content": "x" * 987}}]}
        assert estimate_cost(request, response, pricing) == pytest.approx(1.0)

    def test_estimate_cost_without_content(self):
        pricing = PricingConfig(input_per_1k=4.0, output_per_1k=4.0)
        assert estimate_cost({"m": "abcd"}, {}, pricing) == pytest.approx(0.013)


class TestUsage:
    """用量计数。"""

    def test_record_request(self, store):
        store.record_request("key_1", 0.5, day="2026-10-18")
        store.record_request("key_1", 0.25, day="2026-10-18")
        store.record_request("key_2", 0.25, day="2026-10-19")

        snap = store.snapshot(active_keys=2)
        assert snap["totalRequests"] == 3
        assert snap["totalCost"] == pytest.approx(1.0)
        assert snap["requestsByKey"] == {"key_1": 2, "key_2": 1}
        assert snap["dailyUsage"]["2026-10-18"] == {"requests": 2, "cost": pytest.approx(0.75)}
        assert snap["activeApiKeys"] == 2

    def test_record_defaults_to_today(self, store):
        store.record_request("key_1", 0.1)
        assert len(store.snapshot(1)["dailyUsage"]) == 1

    def test_persist_and_reload(self, store, tmp_path):
        store.record_request("key_1", 0.1, day="2026-10-18")
        store.put_cached("abc", {"analysis": {}, "captions": []})

        reloaded = UsageStore(tmp_path / "stats.json")
        reloaded.load()
        snap = reloaded.snapshot(1)
        assert snap["totalRequests"] == 1
        assert snap["cacheSize"] == 1

    def test_later_write_wins(self, store, tmp_path):
        other = UsageStore(tmp_path / "stats.json")
        store.record_request("key_1", 0.1)
        other.record_request("key_2", 0.1)

        reloaded = UsageStore(tmp_path / "stats.json")
        reloaded.load()
        assert reloaded.snapshot(1)["requestsByKey"] == {"key_2": 1}


class TestLoad:
    """文件加载。"""

    def test_missing_file(self, store):
        store.load()
        assert store.snapshot(0)["totalRequests"] == 0

    def test_corrupted_file(self, store, tmp_path):
        (tmp_path / "stats.json").write_text("not json{{{", encoding="utf-8")
        store.load()
        assert store.snapshot(0)["totalRequests"] == 0

    def test_non_object_root(self, store, tmp_path):
        (tmp_path / "stats.json").write_text("[1, 2]", encoding="utf-8")
        store.load()
        assert store.cache_size == 0

    def test_partial_file_keeps_defaults(self, store, tmp_path):
        (tmp_path / "stats.json").write_text(
            json.dumps({"totalRequests": 7, "unknown": True}), encoding="utf-8"
        )
        store.load()
        snap = store.snapshot(0)
        assert snap["totalRequests"] == 7
        assert snap["requestsByKey"] == {}
        assert snap["ratingsCount"] == 0

    def test_wrong_field_types_reset(self, store, tmp_path):
        (tmp_path / "stats.json").write_text(
            json.dumps({
                "ratings": None,
                "imageHashes": [],
                "totalRequests": "many",
                "totalCost": 1,
                "requestsByKey": {"key_1": 1},
            }),
            encoding="utf-8",
        )
        store.load()

        # 类型不对的字段回到默认值，之后的写操作照常工作
        store.add_rating("c1", 5)
        store.put_cached("h1", {"analysis": {}})
        store.record_request("key_1", 0.5)
        snap = store.snapshot(0)
        assert snap["ratingsCount"] == 1
        assert snap["cacheSize"] == 1
        assert snap["totalRequests"] == 1
        assert snap["totalCost"] == pytest.approx(1.5)
        assert snap["requestsByKey"] == {"key_1": 2}

    def test_boolean_counter_rejected(self, store, tmp_path):
        (tmp_path / "stats.json").write_text(json.dumps({"totalRequests": True}), encoding="utf-8")
        store.load()
        assert store.snapshot(0)["totalRequests"] == 0


class TestCache:
    """图片缓存。"""

    def test_hit_within_ttl(self, store):
        store.put_cached("h1", {"analysis": {"mainSubject": "cat"}}, now=1000.0)
        assert store.get_cached("h1", now=1000.0 + 3600) == {"analysis": {"mainSubject": "cat"}}

    def test_expired_after_ttl(self, store):
        store.put_cached("h1", {"analysis": {}}, now=1000.0)
        assert store.get_cached("h1", now=1000.0 + 24 * 3600) is None

    def test_miss(self, store):
        assert store.get_cached("nope") is None

    def test_touch_counts_access(self, store, tmp_path):
        store.put_cached("h1", {"analysis": {}})
        store.touch("h1")
        store.touch("h1")
        data = json.loads((tmp_path / "stats.json").read_text(encoding="utf-8"))
        entry = data["imageHashes"]["h1"]
        assert entry["accessCount"] == 3
        assert entry["lastAccessed"] <= time.time()

    def test_touch_missing_is_noop(self, store, tmp_path):
        store.touch("nope")
        assert not (tmp_path / "stats.json").exists()

    def test_clear_cache(self, store):
        store.put_cached("h1", {})
        store.put_cached("h2", {})
        assert store.clear_cache() == 2
        assert store.cache_size == 0
        assert store.get_cached("h1") is None


class TestRatings:
    """评分记录。"""

    def test_average(self, store):
        store.add_rating("c1", 5)
        store.add_rating("c2", 2, "too generic")
        snap = store.snapshot(1)
        assert snap["ratingsCount"] == 2
        assert snap["averageRating"] == pytest.approx(3.5)

    def test_no_ratings(self, store):
        assert store.snapshot(1)["averageRating"] is None


class TestAtomicWrite:
    """原子写入。"""

    def test_no_tmp_files_left(self, store, tmp_path):
        for i in range(5):
            store.record_request(f"key_{i}", 0.01)
        assert list(tmp_path.glob("*.tmp")) == []

    def test_creates_parent_directory(self, tmp_path):
        store = UsageStore(tmp_path / "nested" / "dir" / "stats.json")
        store.record_request("key_1", 0.0)
        assert (tmp_path / "nested" / "dir" / "stats.json").exists()
