"""测试 errors.py：状态码分类、对外错误体。"""

from __future__ import annotations

import pytest

from mandarin_captions.errors import (
    ErrorCategory,
    InvalidImageError,
    UpstreamError,
    classify_status,
)


class TestClassifyStatus:
    """上游状态码映射。"""

    @pytest.mark.parametrize("status,body,expected", [
        (401, "", ErrorCategory.AUTH),
        (403, "forbidden", ErrorCategory.AUTH),
        (402, "", ErrorCategory.QUOTA),
        (429, "Rate limit exceeded", ErrorCategory.RATE_LIMIT),
        (429, "Insufficient credits", ErrorCategory.QUOTA),
        (408, "", ErrorCategory.TIMEOUT),
        (504, "", ErrorCategory.TIMEOUT),
        (500, "", ErrorCategory.SERVER),
        (503, "", ErrorCategory.SERVER),
        (400, "bad request", ErrorCategory.INVALID_RESPONSE),
    ])
    def test_mapping(self, status, body, expected):
        assert classify_status(status, body) == expected


class TestErrorBody:
    """对外 JSON 错误体。"""

    def test_upstream_error_is_generic(self):
        err = UpstreamError(ErrorCategory.AUTH, "API request failed: 401 - invalid key sk-or-xxx", 401)
        body = err.to_dict()
        assert err.status_code == 502
        assert body["success"] is False
        assert body["error"] == "AI service unavailable"
        assert "sk-or" not in body["message"]
        assert body["category"] == "auth"

    def test_rate_limit_status(self):
        assert UpstreamError(ErrorCategory.RATE_LIMIT, "slow down").status_code == 429

    def test_invalid_image_message_passthrough(self):
        err = InvalidImageError("Empty file. Please upload a valid image.")
        body = err.to_dict()
        assert err.status_code == 400
        assert body["message"] == "Empty file. Please upload a valid image."
        assert body["category"] is None

    def test_custom_status(self):
        assert InvalidImageError("too big", status_code=413).status_code == 413
