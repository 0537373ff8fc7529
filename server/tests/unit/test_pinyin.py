"""测试 pinyin.py：单字查表、整句转换、标点与混排。"""

from __future__ import annotations

import pytest

from mandarin_captions.pinyin import char_pinyin, has_chinese, to_pinyin


class TestCharLookup:
    """单字查表。"""

    @pytest.mark.parametrize("ch,expected", [
        ("我", "wǒ"),
        ("绿", "lǜ"),
        ("的", "de"),
        ("长", "cháng"),
        ("吧", "ba"),
    ])
    def test_known_chars(self, ch, expected):
        assert char_pinyin(ch) == expected

    def test_unknown_char(self):
        assert char_pinyin("龘") is None


class TestToPinyin:
    """整句转换。"""

    def test_sentence_with_punctuation(self):
        assert to_pinyin("我喜欢猫。") == "wǒ xǐ huān māo."

    def test_mixed_digits_and_latin(self):
        assert to_pinyin("我有2只猫") == "wǒ yǒu 2 zhī māo"
        assert to_pinyin("hello 你好") == "hello nǐ hǎo"

    def test_unknown_han_kept(self):
        assert to_pinyin("龘龘") == "龘 龘"

    def test_comma_attaches_to_previous(self):
        assert to_pinyin("你好，我很好！") == "nǐ hǎo, wǒ hěn hǎo!"

    def test_empty(self):
        assert to_pinyin("") == ""


class TestHasChinese:
    def test_detects(self):
        assert has_chinese("hi 猫")
        assert not has_chinese("cat")
        assert not has_chinese("")
