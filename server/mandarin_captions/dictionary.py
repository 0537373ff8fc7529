"""词典查询：文本模型给出词条，失败时用本地拼音表兜底。"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import TYPE_CHECKING

from pydantic import ValidationError

from mandarin_captions.errors import ResponseParseError, UpstreamError
from mandarin_captions.models import DictionaryEntry
from mandarin_captions.pinyin import to_pinyin
from mandarin_captions.pipeline.client import message_content
from mandarin_captions.pipeline.parsing import loads_lenient
from mandarin_captions.pipeline.prompts import build_dictionary_prompt

if TYPE_CHECKING:
    from mandarin_captions.config import DictionaryConfig
    from mandarin_captions.pipeline.client import OpenRouterClient

logger = logging.getLogger(__name__)


class DictionaryService:
    """单词查询，成功的 AI 词条进程内缓存（LRU，上限 memo_size）。"""

    def __init__(self, client: OpenRouterClient, config: DictionaryConfig) -> None:
        self.client = client
        self.config = config
        self._entries: OrderedDict[str, DictionaryEntry] = OrderedDict()

    async def lookup(self, word: str) -> DictionaryEntry:
        word = word.strip()
        if word in self._entries:
            self._entries.move_to_end(word)
            return self._entries[word]

        payload = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": build_dictionary_prompt(word)}],
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }
        try:
            data = await self.client.chat_completion(payload)
            entry = self._parse_entry(word, message_content(data))
        except (UpstreamError, ResponseParseError) as e:
            logger.warning("Dictionary lookup for %s failed, using local pinyin: %s", word, e)
            return self.local_entry(word)

        self._entries[word] = entry
        while len(self._entries) > self.config.memo_size:
            self._entries.popitem(last=False)
        return entry

    @staticmethod
    def _parse_entry(word: str, text: str) -> DictionaryEntry:
        data = loads_lenient(text)
        if not isinstance(data, dict):
            raise ResponseParseError("Dictionary response is not an object", raw=text)
        data = {k: v for k, v in data.items() if v is not None}
        data["word"] = word
        data["source"] = "ai"
        try:
            entry = DictionaryEntry.model_validate(data)
        except ValidationError as e:
            raise ResponseParseError(f"Dictionary response has invalid fields: {e}", raw=text) from e
        if not entry.pinyin:
            entry.pinyin = to_pinyin(word)
        return entry

    @staticmethod
    def local_entry(word: str) -> DictionaryEntry:
        """只有拼音的本地词条。"""
        return DictionaryEntry(word=word, pinyin=to_pinyin(word), source="local")
