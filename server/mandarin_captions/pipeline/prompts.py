"""Prompt 模板：图片分析、中文配文、词典查询。"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mandarin_captions.models import ImageAnalysis

_JSON_ONLY = (
    "CRITICAL: You MUST respond with ONLY valid JSON. Do not include any text "
    "before or after the JSON object. Do not use markdown formatting."
)

ANALYSIS_PROMPT = f"""You are an expert image analyst and keyword generator. Analyze this image carefully and provide a detailed, accurate description with intelligent keywords.

IMPORTANT INSTRUCTIONS:
- Look at the image carefully and describe ONLY what you actually see
- Be specific about all visible elements: objects, people, animals, food, scenes, artwork, text, etc.
- Identify the most prominent elements first
- Consider the context and setting
- Note colors, lighting, and mood
- Describe any text you can read
- Identify specific items, species, or details when possible
- Generate relevant keywords that would help create accurate Mandarin captions
- Be factual and avoid assumptions

{_JSON_ONLY}

Return your analysis in this exact JSON format:
{{
    "mainSubject": "the most prominent object, person, animal, or scene in the image",
    "category": "descriptive category of the main content",
    "description": "detailed, factual description of what is visible in the image",
    "context": "the setting, location, or situation shown",
    "mood": "the feeling or atmosphere conveyed by the image",
    "colors": "dominant colors and color scheme",
    "details": "specific visual details that would help create accurate captions",
    "confidence": "high|medium|low - your confidence in the analysis",
    "alternativeSubjects": ["other notable subjects in the image"],
    "keywords": ["relevant", "keywords", "for", "caption", "generation"],
    "chineseKeywords": ["中文关键词", "for", "better", "captions"]
}}

Be precise and only describe what you can clearly see."""


_CAPTION_TEMPLATE = """You are a native Chinese speaker creating captions for this specific image.

IMAGE ANALYSIS:
{analysis_lines}

CRITICAL REQUIREMENTS:
1. Create {count} captions that DIRECTLY relate to what is shown in the image
2. Use specific vocabulary that matches the actual content and keywords
3. Make sentences short, natural and conversational, suitable for a Mandarin learner
4. Include accurate pinyin with tone marks (ā á ǎ à)
5. Provide clear, accurate English translations
6. Use varied sentence structures: direct description "这是...", personal reaction "我觉得...", observation "看起来...", experience "我喜欢...", quality "很..."
7. Avoid generic phrases that could apply to any image

{json_only}

Return in this exact JSON format:
{{
    "captions": [
        {{
            "chinese": "Chinese sentence about the image content",
            "pinyin": "pinyin pronunciation with tone marks",
            "english": "Accurate English translation",
            "relevance": "high|medium|low - how well this caption matches the image",
            "keywordsUsed": ["keywords", "used", "in", "this", "caption"]
        }}
    ]
}}"""


_DICTIONARY_TEMPLATE = """You are a Chinese-English dictionary for Mandarin learners.

Give the dictionary entry for the Chinese word: {word}

{json_only}

Return in this exact JSON format:
{{
    "word": "{word}",
    "pinyin": "pinyin with tone marks",
    "english": "short English definition",
    "partOfSpeech": "noun|verb|adjective|...",
    "examples": [
        {{"chinese": "short example sentence", "pinyin": "pinyin", "english": "translation"}}
    ]
}}"""


def build_caption_prompt(analysis: ImageAnalysis, count: int = 3) -> str:
    """按分析结果拼装配文 prompt，空字段不出现。"""
    fields = [
        ("Main Subject", analysis.main_subject),
        ("Category", analysis.category),
        ("Description", analysis.description),
        ("Context", analysis.context),
        ("Mood", analysis.mood),
        ("Colors", analysis.colors),
        ("Specific Details", analysis.details),
        ("Analysis Confidence", analysis.confidence),
        ("Keywords", ", ".join(analysis.keywords)),
        ("Chinese Keywords", ", ".join(analysis.chinese_keywords)),
        ("Alternative Subjects", ", ".join(analysis.alternative_subjects)),
    ]
    lines = "\n".join(f"- {name}: {value}" for name, value in fields if value)
    return _CAPTION_TEMPLATE.format(analysis_lines=lines, count=count, json_only=_JSON_ONLY)


def build_dictionary_prompt(word: str) -> str:
    return _DICTIONARY_TEMPLATE.format(word=word, json_only=_JSON_ONLY)
