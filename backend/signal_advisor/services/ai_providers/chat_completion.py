import logging
from typing import Optional

import httpx

from signal_advisor.core.config import is_configured_key
from signal_advisor.core.exceptions import ConfigurationError, RateLimited, UpstreamUnavailable
from signal_advisor.services.ai_providers.base import AIInvoker

logger = logging.getLogger(__name__)

# OpenAI 兼容 Chat Completions 调用 (默认 Groq)
# 单一固定模型、一次 HTTP 请求，不做自动重试
class ChatCompletionInvoker(AIInvoker):
    name = "groq"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "llama-3.3-70b-versatile",
        base_url: str = "https://api.groq.com/openai/v1",
        temperature: float = 0.3,
        max_tokens: int = 2048,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not is_configured_key(api_key):
            raise ConfigurationError(
                "Groq API key not configured. Get a free key at https://console.groq.com"
            )
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    async def generate(self, prompt: str) -> str:
        """
        调用 Chat Completions 接口

        Returns:
            str: choices[0].message.content

        Raises:
            RateLimited: HTTP 429
            UpstreamUnavailable: 其他非 2xx、网络异常或空响应
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,  # 低温度以保证分析结果的理性和一致性
            "max_tokens": self.max_tokens,
            # JSON Mode: 强制 JSON 输出以保证解析稳定性
            "response_format": {"type": "json_object"},
        }

        logger.info(f"Calling chat completions with model: {self.model}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Chat completion network error: {e}")
            raise UpstreamUnavailable(f"Groq API network error: {e}") from e

        if response.status_code == 429:
            logger.warning(f"Chat completion rate limited: {response.text[:200]}")
            raise RateLimited("Groq rate limit reached. Wait a moment and try again.")

        if not response.is_success:
            error_detail = response.text
            logger.error(f"Chat completion API Error ({response.status_code}): {error_detail}")
            raise UpstreamUnavailable(f"Groq API error ({response.status_code}): {error_detail}")

        try:
            result = response.json()
            text = result["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            text = None

        if not text:
            raise UpstreamUnavailable("No response from Groq")
        return text
