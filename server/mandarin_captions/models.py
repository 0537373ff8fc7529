"""HTTP 消息类型定义：Pydantic 模型，对外 camelCase。"""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_LIST_SPLIT = re.compile(r"[,，、;；]")
_LEVELS = ("high", "medium", "low")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _drop_empty(data: Any) -> Any:
    """去掉 null / 空字符串 / 空列表，让默认值生效。"""
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None and v != "" and v != []}
    return data


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in _LIST_SPLIT.split(value) if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return []


def _as_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if v is not None and str(v).strip())
    return str(value).strip()


def _as_level(value: Any, default: str = "medium") -> str:
    text = str(value).strip().lower()
    for level in _LEVELS:
        if text.startswith(level):
            return level
    return default


# ────────────────────── 模型输出 ──────────────────────


class ImageAnalysis(CamelModel):
    main_subject: str = "unknown subject"
    category: str = "objects"
    description: str = "No description available"
    context: str = "No context available"
    mood: str = "neutral"
    colors: str = "various colors"
    details: str = "No specific details"
    confidence: Literal["high", "medium", "low"] = "medium"
    alternative_subjects: list[str] = []
    keywords: list[str] = []
    chinese_keywords: list[str] = []

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        return _drop_empty(data)

    @field_validator(
        "main_subject", "category", "description", "context", "mood", "colors", "details",
        mode="before",
    )
    @classmethod
    def _join_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("alternative_subjects", "keywords", "chinese_keywords", mode="before")
    @classmethod
    def _split_lists(cls, value: Any) -> list[str]:
        return _as_list(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence_level(cls, value: Any) -> str:
        return _as_level(value)


class Caption(CamelModel):
    chinese: str = ""
    pinyin: str = ""
    english: str = ""
    relevance: Literal["high", "medium", "low"] = "medium"
    keywords_used: list[str] = []

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        return _drop_empty(data)

    @field_validator("chinese", "pinyin", "english", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("keywords_used", mode="before")
    @classmethod
    def _split_keywords(cls, value: Any) -> list[str]:
        return _as_list(value)

    @field_validator("relevance", mode="before")
    @classmethod
    def _relevance_level(cls, value: Any) -> str:
        return _as_level(value)


# ────────────────────── 请求 / 响应 ──────────────────────


class AnalyzeResponse(CamelModel):
    success: bool = True
    analysis: ImageAnalysis
    captions: list[Caption]
    cached: bool = False
    fallback: bool = False
    image_hash: str = ""


class RateCaptionRequest(CamelModel):
    caption_id: str
    rating: int = Field(ge=1, le=5)
    feedback: str = ""


class DailyUsage(CamelModel):
    requests: int = 0
    cost: float = 0.0


class UsageResponse(CamelModel):
    total_requests: int
    total_cost: float
    requests_by_key: dict[str, int]
    daily_usage: dict[str, DailyUsage]
    cache_size: int
    active_api_keys: int
    ratings_count: int = 0
    average_rating: float | None = None


class DictionaryExample(CamelModel):
    chinese: str
    pinyin: str = ""
    english: str = ""


class DictionaryEntry(CamelModel):
    word: str
    pinyin: str = ""
    english: str = ""
    part_of_speech: str = ""
    examples: list[DictionaryExample] = []
    source: Literal["ai", "local"] = "ai"
