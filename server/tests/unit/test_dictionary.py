"""测试 dictionary.py：AI 词条、进程内缓存、本地拼音兜底。"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from mandarin_captions.dictionary import DictionaryService
from mandarin_captions.errors import ErrorCategory, UpstreamError

from upstream_samples import completion

ENTRY = {
    "word": "你好",
    "pinyin": "nǐ hǎo",
    "english": "hello",
    "partOfSpeech": "interjection",
    "examples": [{"chinese": "你好，我叫小明。", "pinyin": "nǐ hǎo, wǒ jiào xiǎo míng.", "english": "Hello, my name is Xiaoming."}],
}


@pytest.fixture
def service(mock_client, test_config) -> DictionaryService:
    mock_client.chat_completion = AsyncMock(
        return_value=completion(json.dumps(ENTRY, ensure_ascii=False))
    )
    return DictionaryService(mock_client, test_config.dictionary)


class TestLookup:
    """查询。"""

    async def test_ai_entry(self, service, mock_client):
        entry = await service.lookup("你好")

        assert entry.source == "ai"
        assert entry.english == "hello"
        assert entry.part_of_speech == "interjection"
        assert entry.examples[0].english == "Hello, my name is Xiaoming."
        payload = mock_client.chat_completion.await_args.args[0]
        assert payload["model"] == "test/text"
        assert "你好" in payload["messages"][0]["content"]

    async def test_entry_is_memoized(self, service, mock_client):
        await service.lookup("你好")
        await service.lookup(" 你好 ")
        assert mock_client.chat_completion.await_count == 1

    async def test_word_forced_to_query(self, service, mock_client):
        mock_client.chat_completion = AsyncMock(
            return_value=completion('```json\n{"word": "您好", "english": "hello (polite)"}\n```')
        )
        entry = await service.lookup("你好")
        assert entry.word == "你好"
        # 缺拼音时用本地表补齐
        assert entry.pinyin == "nǐ hǎo"


class TestLocalFallback:
    """上游不可用时只返回拼音。"""

    async def test_upstream_error(self, service, mock_client):
        mock_client.chat_completion = AsyncMock(
            side_effect=UpstreamError(ErrorCategory.NETWORK, "connection refused")
        )
        entry = await service.lookup("你好")
        assert entry.source == "local"
        assert entry.pinyin == "nǐ hǎo"
        assert entry.english == ""

    async def test_garbage_response(self, service, mock_client):
        mock_client.chat_completion = AsyncMock(return_value=completion("你好 means hello."))
        entry = await service.lookup("你好")
        assert entry.source == "local"

    async def test_local_entry_not_memoized(self, service, mock_client):
        mock_client.chat_completion = AsyncMock(side_effect=[
            UpstreamError(ErrorCategory.TIMEOUT, "timed out"),
            completion(json.dumps(ENTRY, ensure_ascii=False)),
        ])
        first = await service.lookup("你好")
        second = await service.lookup("你好")
        assert first.source == "local"
        assert second.source == "ai"


class TestMemoLimit:
    """词条缓存上限。"""

    async def test_least_recent_entry_evicted(self, mock_client, test_config):
        config = test_config.dictionary.model_copy(update={"memo_size": 2})
        mock_client.chat_completion = AsyncMock(
            return_value=completion(json.dumps(ENTRY, ensure_ascii=False))
        )
        service = DictionaryService(mock_client, config)

        await service.lookup("你好")
        await service.lookup("谢谢")
        await service.lookup("你好")  # 命中，移到最新
        await service.lookup("再见")  # 超出上限，淘汰 谢谢
        assert mock_client.chat_completion.await_count == 3

        await service.lookup("你好")
        assert mock_client.chat_completion.await_count == 3
        await service.lookup("谢谢")
        assert mock_client.chat_completion.await_count == 4
