"""模型回复归一化：去 markdown 围栏、截取 JSON、正则兜底抽字段、结果校验。

上游 prompt/回复格式的变化只影响本模块，HTTP 层只看到 ImageAnalysis / Caption。
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from mandarin_captions.errors import ResponseParseError
from mandarin_captions.models import Caption, ImageAnalysis
from mandarin_captions.pinyin import has_chinese, to_pinyin

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*(.*?)(?:```|\Z)", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[A-Za-z]*\s*(.*?)(?:```|\Z)", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_QUOTED_ITEM = re.compile(r'"((?:[^"\\]|\\.)*)"')

_ANALYSIS_TEXT_FIELDS = (
    "mainSubject", "category", "description", "context",
    "mood", "colors", "details", "confidence",
)
_ANALYSIS_LIST_FIELDS = ("alternativeSubjects", "keywords", "chineseKeywords")

# "Main Subject: a cat" 这类纯文本标签行
_ANALYSIS_LABELS = {
    "main subject": "mainSubject",
    "subject": "mainSubject",
    "category": "category",
    "description": "description",
    "context": "context",
    "mood": "mood",
    "colors": "colors",
    "details": "details",
    "confidence": "confidence",
    "keywords": "keywords",
}
_LABELED_LINE = re.compile(
    r"^[\s*\-#>]*(" + "|".join(sorted(_ANALYSIS_LABELS, key=len, reverse=True)) + r")\s*[:：]\s*(.+?)\s*$",
    re.IGNORECASE | re.MULTILINE,
)

_CAPTION_LABELS = {
    "chinese": "chinese",
    "中文": "chinese",
    "pinyin": "pinyin",
    "拼音": "pinyin",
    "english": "english",
    "英文": "english",
    "translation": "english",
}
_CAPTION_LINE = re.compile(
    r"^[\s*\-#>\d.)]*(" + "|".join(_CAPTION_LABELS) + r")\s*[:：]\s*(.+?)\s*$",
    re.IGNORECASE | re.MULTILINE,
)

_GENERIC_TERMS = ("photo", "image", "picture", "something", "object", "thing")
_GENERIC_PHRASES = (
    "这是一个", "这是照片", "这是图片", "这是东西", "这是物体",
    "this is a", "this is an", "this is the", "this looks like",
)


# ────────────────────── 文本清洗 ──────────────────────


def strip_code_fences(text: str) -> str:
    """取 ```json 围栏内容，没有则取第一个 ``` 围栏，都没有原样返回。"""
    text = text.strip()
    match = _JSON_FENCE.search(text) or _ANY_FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text


def extract_json_block(text: str) -> str:
    """去围栏后截取最外层 JSON 对象；数组包住对象或没有对象时截取数组。"""
    body = strip_code_fences(text)
    obj_start, obj_end = body.find("{"), body.rfind("}")
    arr_start, arr_end = body.find("["), body.rfind("]")
    has_obj = obj_start != -1 and obj_end > obj_start
    has_arr = arr_start != -1 and arr_end > arr_start
    # 数组只有在整体包住对象时才优先，前言里的 "[3]" 之类不算
    if has_arr and (not has_obj or (arr_start < obj_start and arr_end > obj_end)):
        return body[arr_start : arr_end + 1]
    if has_obj:
        return body[obj_start : obj_end + 1]
    return body


def loads_lenient(text: str) -> Any:
    """解析 JSON，失败时去掉尾逗号再试一次。"""
    block = extract_json_block(text)
    for candidate in (block, _TRAILING_COMMA.sub(r"\1", block)):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ResponseParseError("Response is not valid JSON", raw=text)


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value


def _string_field(text: str, name: str) -> str | None:
    match = re.search(rf'"{name}"\s*:\s*"((?:[^"\\]|\\.)*)"', text)
    return _unescape(match.group(1)).strip() if match else None


def _list_field(text: str, name: str) -> list[str] | None:
    match = re.search(rf'"{name}"\s*:\s*\[(.*?)\]', text, re.DOTALL)
    if not match:
        return None
    return [_unescape(item) for item in _QUOTED_ITEM.findall(match.group(1))]


# ────────────────────── 图片分析 ──────────────────────


def _extract_analysis_fields(text: str) -> dict[str, Any]:
    """JSON 解析失败时逐字段正则抽取。"""
    data: dict[str, Any] = {}
    for name in _ANALYSIS_TEXT_FIELDS:
        value = _string_field(text, name)
        if value:
            data[name] = value
    for name in _ANALYSIS_LIST_FIELDS:
        items = _list_field(text, name)
        if items:
            data[name] = items
    if data:
        return data

    for label, value in _LABELED_LINE.findall(text):
        data.setdefault(_ANALYSIS_LABELS[label.lower()], value)
    return data


def parse_analysis(text: str) -> ImageAnalysis:
    """模型回复 → ImageAnalysis。拿不到 mainSubject 时抛 ResponseParseError。"""
    logger.debug("Raw analysis response: %s", text)
    try:
        data = loads_lenient(text)
    except ResponseParseError:
        logger.warning("Analysis response is not valid JSON, falling back to field extraction")
        data = _extract_analysis_fields(text)

    if isinstance(data, dict) and isinstance(data.get("analysis"), dict):
        data = data["analysis"]
    if not isinstance(data, dict):
        raise ResponseParseError("Analysis response is not an object", raw=text)
    if not (data.get("mainSubject") or data.get("main_subject")):
        raise ResponseParseError("Analysis response has no mainSubject", raw=text)

    try:
        return ImageAnalysis.model_validate(data)
    except ValidationError as e:
        raise ResponseParseError(f"Analysis response has invalid fields: {e}", raw=text) from e


def validate_analysis(analysis: ImageAnalysis) -> list[str]:
    """质量检查，只返回问题列表，不抛异常。"""
    issues: list[str] = []
    subject = analysis.main_subject.lower()
    description = analysis.description.lower()

    if len(analysis.main_subject) < 2:
        issues.append("mainSubject is missing or too short")
    if len(analysis.category) < 2:
        issues.append("category is missing or too short")
    if len(analysis.description) < 10:
        issues.append("description is missing or too short")
    if any(term in subject for term in _GENERIC_TERMS):
        issues.append("mainSubject is too generic")
    if any(term in description for term in _GENERIC_TERMS):
        issues.append("description is too generic")
    if analysis.confidence == "low":
        issues.append("low confidence in analysis")
    if not analysis.keywords:
        issues.append("keywords are missing")
    return issues


# ────────────────────── 中文配文 ──────────────────────


def _segments(text: str, starts: list[int]) -> list[str]:
    bounds = starts + [len(text)]
    return [text[bounds[i] : bounds[i + 1]] for i in range(len(starts))]


def _extract_caption_items(text: str) -> list[dict[str, Any]]:
    """JSON 解析失败时按 "chinese" 出现位置切段抽取。"""
    starts = [m.start() for m in re.finditer(r'"chinese"\s*:', text)]
    items: list[dict[str, Any]] = []
    if starts:
        for segment in _segments(text, starts):
            item = {
                name: _string_field(segment, name)
                for name in ("chinese", "pinyin", "english", "relevance")
            }
            items.append({k: v for k, v in item.items() if v})
        return items

    # 纯文本 "Chinese: ... / Pinyin: ... / English: ..."
    current: dict[str, Any] = {}
    for label, value in _CAPTION_LINE.findall(text):
        key = _CAPTION_LABELS[label.lower()]
        if key == "chinese" and current:
            items.append(current)
            current = {}
        current[key] = value
    if current:
        items.append(current)
    return items


def parse_captions(text: str) -> list[Caption]:
    """模型回复 → Caption 列表（未过滤）。一条都没有时抛 ResponseParseError。"""
    logger.debug("Raw caption response: %s", text)
    try:
        data = loads_lenient(text)
    except ResponseParseError:
        logger.warning("Caption response is not valid JSON, falling back to field extraction")
        items: Any = _extract_caption_items(text)
    else:
        if isinstance(data, dict):
            items = data.get("captions") or ([data] if "chinese" in data else [])
        elif isinstance(data, list):
            items = data
        else:
            items = []

    captions: list[Caption] = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        try:
            captions.append(Caption.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed caption %r: %s", item, e)

    if not captions:
        raise ResponseParseError("Response contains no captions", raw=text)
    return captions


def validate_captions(captions: list[Caption], limit: int = 3) -> list[Caption]:
    """过滤缺字段 / 低相关 / 套话的配文，补拼音，最多保留 limit 条。"""
    kept: list[Caption] = []
    for caption in captions:
        if not caption.chinese or not caption.english or not has_chinese(caption.chinese):
            logger.warning("Caption missing required fields: %r", caption)
            continue
        if caption.relevance == "low":
            logger.warning("Low relevance caption filtered out: %s", caption.chinese)
            continue
        chinese = caption.chinese.lower()
        english = caption.english.lower()
        if any(p in chinese or p in english for p in _GENERIC_PHRASES):
            logger.warning("Generic caption filtered out: %s", caption.chinese)
            continue
        if not caption.pinyin:
            caption = caption.model_copy(update={"pinyin": to_pinyin(caption.chinese)})
        kept.append(caption)
        if len(kept) >= limit:
            break
    return kept
