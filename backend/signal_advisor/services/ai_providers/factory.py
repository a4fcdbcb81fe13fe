import logging

from signal_advisor.core.config import AnalysisConfig
from signal_advisor.services.ai_providers.base import AIInvoker
from signal_advisor.services.ai_providers.chat_completion import ChatCompletionInvoker
from signal_advisor.services.ai_providers.gemini import GeminiInvoker

logger = logging.getLogger(__name__)


def build_invoker(config: AnalysisConfig) -> AIInvoker:
    """根据显式配置选择供应商；Key 缺失时立即抛 ConfigurationError"""
    logger.info(f"Using AI provider: {config.provider}")
    if config.provider == "gemini":
        return GeminiInvoker(
            api_key=config.gemini_api_key,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout_seconds,
        )
    return ChatCompletionInvoker(
        api_key=config.groq_api_key,
        model=config.groq_model,
        base_url=config.groq_base_url,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout_seconds,
    )
