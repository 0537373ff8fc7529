"""配文流水线：缓存查找 → 图片分析 → 中文配文 → 写缓存。"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from mandarin_captions.errors import ErrorCategory, ResponseParseError, UpstreamError
from mandarin_captions.models import AnalyzeResponse, Caption, ImageAnalysis
from mandarin_captions.pipeline.client import message_content
from mandarin_captions.pipeline.parsing import (
    parse_analysis,
    parse_captions,
    validate_analysis,
    validate_captions,
)
from mandarin_captions.pipeline.prompts import ANALYSIS_PROMPT, build_caption_prompt
from mandarin_captions.store import image_hash

if TYPE_CHECKING:
    from mandarin_captions.config import Settings
    from mandarin_captions.pipeline.client import OpenRouterClient
    from mandarin_captions.store import UsageStore

logger = logging.getLogger(__name__)


def _caption(chinese: str, pinyin: str, english: str) -> Caption:
    return Caption(chinese=chinese, pinyin=pinyin, english=english, relevance="medium")


# 模型输出不可用时的兜底配文，按分析类别挑选
_FALLBACK_CAPTIONS: dict[str, list[Caption]] = {
    "food": [
        _caption("看起来很好吃！", "kàn qǐlái hěn hǎochī!", "It looks delicious!"),
        _caption("我想尝一尝。", "wǒ xiǎng cháng yī cháng.", "I want to have a taste."),
        _caption("这道菜真香。", "zhè dào cài zhēn xiāng.", "This dish smells great."),
    ],
    "animal": [
        _caption("它真可爱！", "tā zhēn kě'ài!", "It is so cute!"),
        _caption("我很喜欢这只小动物。", "wǒ hěn xǐhuan zhè zhī xiǎo dòngwù.", "I really like this little animal."),
        _caption("它看起来很开心。", "tā kàn qǐlái hěn kāixīn.", "It looks very happy."),
    ],
    "nature": [
        _caption("风景真美。", "fēngjǐng zhēn měi.", "The scenery is really beautiful."),
        _caption("我想去那里走走。", "wǒ xiǎng qù nàlǐ zǒuzou.", "I want to go for a walk there."),
        _caption("今天的天气很好。", "jīntiān de tiānqì hěn hǎo.", "The weather is nice today."),
    ],
    "people": [
        _caption("他们看起来很开心。", "tāmen kàn qǐlái hěn kāixīn.", "They look very happy."),
        _caption("大家在一起真好。", "dàjiā zài yīqǐ zhēn hǎo.", "It's great to be together."),
        _caption("这是美好的一天。", "zhè shì měihǎo de yī tiān.", "It's a wonderful day."),
    ],
    "default": [
        _caption("我很喜欢这个画面。", "wǒ hěn xǐhuan zhège huàmiàn.", "I really like this scene."),
        _caption("看起来很有意思！", "kàn qǐlái hěn yǒu yìsi!", "It looks really interesting!"),
        _caption("颜色很漂亮。", "yánsè hěn piàoliang.", "The colors are beautiful."),
    ],
}

_CATEGORY_HINTS: dict[str, tuple[str, ...]] = {
    "food": ("food", "dish", "meal", "drink", "fruit", "dessert", "cuisine", "食", "菜"),
    "animal": ("animal", "pet", "dog", "cat", "bird", "wildlife", "fish", "动物"),
    "nature": ("nature", "landscape", "scenery", "outdoor", "mountain", "beach", "sky", "风景"),
    "people": ("people", "person", "portrait", "family", "friends", "selfie", "人"),
}


def fallback_captions(analysis: ImageAnalysis | None, limit: int = 3) -> list[Caption]:
    """按类别挑兜底配文，匹配不到用 default。"""
    if analysis is not None:
        haystack = f"{analysis.category} {analysis.main_subject}".lower()
        for kind, hints in _CATEGORY_HINTS.items():
            if any(hint in haystack for hint in hints):
                return [c.model_copy() for c in _FALLBACK_CAPTIONS[kind][:limit]]
    return [c.model_copy() for c in _FALLBACK_CAPTIONS["default"][:limit]]


class Captioner:
    """串联上游两次调用与缓存。"""

    def __init__(self, client: OpenRouterClient, store: UsageStore, settings: Settings) -> None:
        self.client = client
        self.store = store
        self.settings = settings

    async def process(self, image: bytes, mime_type: str = "image/jpeg") -> AnalyzeResponse:
        """完整流程。命中缓存直接返回；兜底配文的结果不写缓存。"""
        key = image_hash(image)
        cached = self.store.get_cached(key)
        if cached is not None:
            logger.info("Using cached result for %s", key[:12])
            try:
                response = AnalyzeResponse.model_validate(
                    {**cached, "cached": True, "imageHash": key}
                )
            except ValidationError as e:
                logger.warning("Discarding unreadable cache entry %s: %s", key[:12], e)
            else:
                self.store.touch(key)
                return response

        analysis = await self.analyze_image(image, mime_type)
        captions, fallback = await self.generate_captions(analysis)
        response = AnalyzeResponse(
            analysis=analysis, captions=captions, fallback=fallback, image_hash=key
        )
        if not fallback:
            self.store.put_cached(key, self._cache_payload(response))
        return response

    @staticmethod
    def _cache_payload(response: AnalyzeResponse) -> dict[str, Any]:
        return response.model_dump(by_alias=True, include={"analysis", "captions"})

    async def analyze_image(self, image: bytes, mime_type: str = "image/jpeg") -> ImageAnalysis:
        """多模态分析。上游失败和解析失败都抛 UpstreamError。"""
        cfg = self.settings.vision
        encoded = base64.b64encode(image).decode("ascii")
        payload = {
            "model": cfg.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": ANALYSIS_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                        },
                    ],
                }
            ],
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "top_p": cfg.top_p,
            "frequency_penalty": cfg.frequency_penalty,
            "presence_penalty": cfg.presence_penalty,
        }

        data = await self.client.chat_completion(payload)
        text = message_content(data)
        try:
            analysis = parse_analysis(text)
        except ResponseParseError as e:
            logger.error("Failed to parse analysis response: %s", e)
            raise UpstreamError(
                ErrorCategory.INVALID_RESPONSE, f"response parsing error: {e}"
            ) from e

        issues = validate_analysis(analysis)
        if issues:
            logger.warning("Analysis validation issues: %s", "; ".join(issues))
        logger.info("Analyzed image: %s (%s)", analysis.main_subject, analysis.category)
        return analysis

    async def generate_captions(self, analysis: ImageAnalysis) -> tuple[list[Caption], bool]:
        """生成中文配文，返回 (captions, 是否兜底)。任何失败都降级为兜底配文。"""
        cfg = self.settings.captions
        payload = {
            "model": cfg.model,
            "messages": [
                {"role": "user", "content": build_caption_prompt(analysis, cfg.max_captions)}
            ],
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "top_p": cfg.top_p,
            "frequency_penalty": cfg.frequency_penalty,
            "presence_penalty": cfg.presence_penalty,
        }

        try:
            data = await self.client.chat_completion(payload)
            captions = validate_captions(
                parse_captions(message_content(data)), limit=cfg.max_captions
            )
        except (UpstreamError, ResponseParseError) as e:
            logger.warning("Caption generation failed, using fallback captions: %s", e)
            return fallback_captions(analysis, cfg.max_captions), True

        if not captions:
            logger.warning("No captions survived validation, using fallback captions")
            return fallback_captions(analysis, cfg.max_captions), True
        return captions, False
