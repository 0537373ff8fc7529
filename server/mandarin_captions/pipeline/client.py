"""上游客户端：OpenRouter chat completions，多 key 轮换 + 顺序重试。"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from mandarin_captions.errors import ErrorCategory, UpstreamError, classify_status
from mandarin_captions.store import estimate_cost

if TYPE_CHECKING:
    from mandarin_captions.config import PricingConfig, UpstreamConfig
    from mandarin_captions.store import UsageStore

logger = logging.getLogger(__name__)


def message_content(data: dict[str, Any]) -> str:
    """取 choices[0].message.content。"""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise UpstreamError(
            ErrorCategory.INVALID_RESPONSE, f"Response has no message content: {e!r}"
        ) from e
    if not isinstance(content, str) or not content.strip():
        raise UpstreamError(ErrorCategory.INVALID_RESPONSE, "Response message content is empty")
    return content


class OpenRouterClient:
    """chat-completion 客户端，失败时轮换到下一个 key。"""

    def __init__(
        self,
        config: UpstreamConfig,
        pricing: PricingConfig,
        usage: UsageStore | None = None,
    ) -> None:
        self.config = config
        self.pricing = pricing
        self.usage = usage
        self._client: httpx.AsyncClient | None = None
        self._key_index: int = 0

    async def start(self) -> None:
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout))

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def key_count(self) -> int:
        return len(self.config.api_keys)

    @property
    def current_key_index(self) -> int:
        return self._key_index

    def _rotate_key(self) -> None:
        self._key_index = (self._key_index + 1) % self.key_count
        logger.info("Switched to API key %d of %d", self._key_index + 1, self.key_count)

    def _headers(self, key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.title,
        }

    async def chat_completion(self, payload: dict[str, Any]) -> dict[str, Any]:
        """发送请求，逐个 key 顺序重试，全部失败抛出最后一个错误。"""
        if not self._client:
            raise RuntimeError("Upstream client not started")
        if not self.config.api_keys:
            raise UpstreamError(ErrorCategory.AUTH, "No upstream API keys configured")

        attempts = self.config.max_attempts or self.key_count
        last_error: UpstreamError | None = None

        for attempt in range(attempts):
            index = self._key_index
            logger.debug("Using API key %d (attempt %d/%d)", index + 1, attempt + 1, attempts)
            try:
                data = await self._attempt(self.config.api_keys[index], payload)
            except UpstreamError as e:
                logger.warning("API key %d failed: %s (%s)", index + 1, e.detail, e.category)
                last_error = e
                if attempt < attempts - 1:
                    self._rotate_key()
                continue

            if self.usage is not None:
                self.usage.record_request(
                    f"key_{index + 1}", estimate_cost(payload, data, self.pricing)
                )
            return data

        assert last_error is not None
        raise last_error

    async def _attempt(self, key: str, payload: dict[str, Any]) -> dict[str, Any]:
        """单次调用，所有失败统一转成 UpstreamError。"""
        try:
            resp = await self._client.post(
                self.config.api_url, json=payload, headers=self._headers(key)
            )
        except httpx.TimeoutException as e:
            raise UpstreamError(ErrorCategory.TIMEOUT, f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(ErrorCategory.NETWORK, f"Network error: {e}") from e

        if resp.status_code != 200:
            body = resp.text
            raise UpstreamError(
                classify_status(resp.status_code, body),
                f"API request failed: {resp.status_code} - {body[:500]}",
                status=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(
                ErrorCategory.INVALID_RESPONSE, f"Response is not JSON: {e}"
            ) from e
        if not isinstance(data, dict):
            raise UpstreamError(ErrorCategory.INVALID_RESPONSE, "Response is not a JSON object")

        # OpenRouter 有时以 200 返回错误体
        error = data.get("error")
        if error:
            code = error.get("code", 500) if isinstance(error, dict) else 500
            message = error.get("message", "") if isinstance(error, dict) else str(error)
            status = code if isinstance(code, int) else 500
            raise UpstreamError(
                classify_status(status, message),
                f"API returned error: {status} - {message}",
                status=status,
            )
        return data
