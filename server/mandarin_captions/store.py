"""用量统计 + 图片缓存持久化：单个 JSON 文件存储。"""

from __future__ import annotations

import hashlib
import json
import logging
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mandarin_captions.config import PricingConfig

logger = logging.getLogger(__name__)


def image_hash(data: bytes) -> str:
    """图片内容 SHA-256，作为缓存 key。"""
    return hashlib.sha256(data).hexdigest()


def estimate_cost(
    request: dict[str, Any], response: dict[str, Any], pricing: PricingConfig
) -> float:
    """粗略估算单次调用费用（按 4 字符 ≈ 1 token）。"""
    input_tokens = len(json.dumps(request, ensure_ascii=False)) / 4
    try:
        content = response["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError):
        content = ""
    output_tokens = len(content) / 4
    return (
        input_tokens / 1000 * pricing.input_per_1k
        + output_tokens / 1000 * pricing.output_per_1k
    )


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _empty_stats() -> dict[str, Any]:
    return {
        "totalRequests": 0,
        "totalCost": 0.0,
        "requestsByKey": {},
        "dailyUsage": {},
        "imageHashes": {},
        "ratings": [],
    }


def _same_kind(value: Any, default: Any) -> bool:
    """加载的字段类型是否与默认值一致，计数字段 int/float 通用。"""
    if isinstance(default, (int, float)):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, type(default))


class UsageStore:
    """用量计数、评分与图片哈希缓存，每次变更都落盘。"""

    def __init__(self, path: Path, ttl_hours: float = 24.0) -> None:
        self.path = path
        self.ttl_seconds = ttl_hours * 3600
        self._stats: dict[str, Any] = _empty_stats()

    def load(self) -> None:
        """从 JSON 文件加载。文件不存在或损坏则从空统计开始。"""
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise TypeError("stats file root is not an object")
        except (json.JSONDecodeError, TypeError, OSError) as e:
            logger.warning("Failed to load usage stats from %s: %s, starting fresh", self.path, e)
            return
        stats = _empty_stats()
        for key, value in data.items():
            if key not in stats:
                continue
            if not _same_kind(value, stats[key]):
                logger.warning(
                    "Ignoring malformed %s in %s: expected %s, got %s",
                    key, self.path, type(stats[key]).__name__, type(value).__name__,
                )
                continue
            stats[key] = value
        self._stats = stats

    def save(self) -> None:
        """保存到 JSON 文件（原子写入：临时文件 + rename）。"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with open(fd, "w", encoding="utf-8") as f:
                json.dump(self._stats, f, ensure_ascii=False, indent=2)
            Path(tmp_path).replace(self.path)
        except Exception:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    # ────────────────────── 用量 ──────────────────────

    def record_request(self, key_name: str, cost: float, day: str | None = None) -> None:
        stats = self._stats
        stats["totalRequests"] += 1
        stats["totalCost"] += cost
        by_key = stats["requestsByKey"]
        by_key[key_name] = by_key.get(key_name, 0) + 1

        daily = stats["dailyUsage"].setdefault(day or _today(), {"requests": 0, "cost": 0.0})
        daily["requests"] += 1
        daily["cost"] += cost
        self.save()

    # ────────────────────── 缓存 ──────────────────────

    def get_cached(self, key: str, now: float | None = None) -> dict[str, Any] | None:
        """命中且未过期返回缓存结果，否则 None。"""
        entry = self._stats["imageHashes"].get(key)
        if not entry:
            return None
        now = time.time() if now is None else now
        if now - entry.get("timestamp", 0.0) >= self.ttl_seconds:
            return None
        return entry.get("result")

    def put_cached(self, key: str, result: dict[str, Any], now: float | None = None) -> None:
        self._stats["imageHashes"][key] = {
            "result": result,
            "timestamp": time.time() if now is None else now,
            "accessCount": 1,
        }
        self.save()

    def touch(self, key: str) -> None:
        """记录一次缓存命中。"""
        entry = self._stats["imageHashes"].get(key)
        if entry:
            entry["accessCount"] = entry.get("accessCount", 0) + 1
            entry["lastAccessed"] = time.time()
            self.save()

    def clear_cache(self) -> int:
        cleared = len(self._stats["imageHashes"])
        self._stats["imageHashes"] = {}
        self.save()
        return cleared

    @property
    def cache_size(self) -> int:
        return len(self._stats["imageHashes"])

    # ────────────────────── 评分 ──────────────────────

    def add_rating(self, caption_id: str, rating: int, feedback: str = "") -> None:
        self._stats["ratings"].append(
            {
                "captionId": caption_id,
                "rating": rating,
                "feedback": feedback,
                "timestamp": time.time(),
            }
        )
        self.save()

    def snapshot(self, active_keys: int) -> dict[str, Any]:
        """对外用量视图（不含缓存内容）。"""
        stats = self._stats
        ratings = [r["rating"] for r in stats["ratings"]]
        return {
            "totalRequests": stats["totalRequests"],
            "totalCost": stats["totalCost"],
            "requestsByKey": dict(stats["requestsByKey"]),
            "dailyUsage": {day: dict(v) for day, v in stats["dailyUsage"].items()},
            "cacheSize": self.cache_size,
            "activeApiKeys": active_keys,
            "ratingsCount": len(ratings),
            "averageRating": sum(ratings) / len(ratings) if ratings else None,
        }
