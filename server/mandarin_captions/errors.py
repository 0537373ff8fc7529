"""错误分类：上游 HTTP 错误映射为粗粒度类别，对外只暴露通用提示。"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    QUOTA = "quota"
    TIMEOUT = "timeout"
    NETWORK = "network"
    SERVER = "server"
    INVALID_RESPONSE = "invalid_response"


_QUOTA_MARKERS = ("quota", "credit", "insufficient", "billing")

# category → (HTTP status, error, message)
_PUBLIC_ERRORS: dict[ErrorCategory, tuple[int, str, str]] = {
    ErrorCategory.AUTH: (
        502,
        "AI service unavailable",
        "The AI service rejected the configured credentials.",
    ),
    ErrorCategory.RATE_LIMIT: (
        429,
        "Too many requests",
        "The AI service is rate limiting requests. Please try again shortly.",
    ),
    ErrorCategory.QUOTA: (
        402,
        "Service quota exhausted",
        "The AI service usage quota has been used up.",
    ),
    ErrorCategory.TIMEOUT: (
        504,
        "AI service timeout",
        "The AI service took too long to respond.",
    ),
    ErrorCategory.NETWORK: (
        502,
        "Service temporarily unavailable",
        "Unable to connect to the AI analysis service.",
    ),
    ErrorCategory.SERVER: (
        502,
        "Service temporarily unavailable",
        "All AI service endpoints are currently unavailable.",
    ),
    ErrorCategory.INVALID_RESPONSE: (
        502,
        "AI response format error",
        "The AI service returned an unexpected response format.",
    ),
}


def classify_status(status: int, body: str = "") -> ErrorCategory:
    """将上游 HTTP 状态码（及响应体）映射为错误类别。"""
    lowered = body.lower()
    if status in (401, 403):
        return ErrorCategory.AUTH
    if status == 402:
        return ErrorCategory.QUOTA
    if status == 429:
        if any(marker in lowered for marker in _QUOTA_MARKERS):
            return ErrorCategory.QUOTA
        return ErrorCategory.RATE_LIMIT
    if status in (408, 504):
        return ErrorCategory.TIMEOUT
    if status >= 500:
        return ErrorCategory.SERVER
    return ErrorCategory.INVALID_RESPONSE


class ServiceError(Exception):
    """所有对外可见错误的基类。"""

    status_code: int = 500
    error: str = "Failed to process image"
    public_message: str = "Something went wrong while processing the request."

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message

    @property
    def category(self) -> str | None:
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "success": False,
            "error": self.error,
            "message": self.public_message,
            "technicalDetails": self.detail,
            "category": self.category,
        }


class BadRequestError(ServiceError):
    """请求参数不合法，message 直接返回给客户端。"""

    status_code = 400
    error = "Invalid request"

    def __init__(self, detail: str, status_code: int = 400) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.public_message = detail


class InvalidImageError(BadRequestError):
    """上传的文件不是可用的图片。"""

    error = "Invalid image"


class UpstreamError(ServiceError):
    """上游 chat-completion 调用失败。"""

    def __init__(
        self, category: ErrorCategory, detail: str, status: int | None = None
    ) -> None:
        super().__init__(detail)
        self._category = category
        self.upstream_status = status
        self.status_code, self.error, self.public_message = _PUBLIC_ERRORS[category]

    @property
    def category(self) -> str:
        return self._category.value

    @property
    def kind(self) -> ErrorCategory:
        return self._category


class ResponseParseError(ValueError):
    """模型输出无法解析为预期结构。"""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw
