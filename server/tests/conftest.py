"""共享 fixtures：测试配置、mock 上游客户端、临时用量文件等。"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from mandarin_captions.config import Settings, load_settings
from mandarin_captions.store import UsageStore

from upstream_samples import ANALYSIS, CAPTIONS, completion

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ────────────────────── Fixtures ──────────────────────


@pytest.fixture
def test_config(tmp_path) -> Settings:
    """加载测试专用配置，用量文件放到临时目录。"""
    settings = load_settings(FIXTURES_DIR / "test_config.toml")
    settings.cache.stats_file = tmp_path / "usage-stats.json"
    return settings


@pytest.fixture
def store(tmp_path) -> UsageStore:
    return UsageStore(tmp_path / "stats.json", ttl_hours=24)


@pytest.fixture
def mock_client() -> MagicMock:
    """Mock OpenRouterClient：先返回分析，再返回配文。"""
    client = MagicMock()
    client.key_count = 2
    client.start = AsyncMock()
    client.close = AsyncMock()
    client.chat_completion = AsyncMock(
        side_effect=[
            completion(json.dumps(ANALYSIS)),
            completion(json.dumps(CAPTIONS, ensure_ascii=False)),
        ]
    )
    return client


@pytest.fixture
def sample_image() -> bytes:
    """假 JPEG 内容，只用于哈希和 base64。"""
    return b"\xff\xd8\xff\xe0" + b"fake-jpeg-body" * 8
