from signal_advisor.services.ai_providers.base import AIInvoker, ModelDescriptor
from signal_advisor.services.ai_providers.chat_completion import ChatCompletionInvoker
from signal_advisor.services.ai_providers.gemini import (
    GeminiInvoker, GeminiModelDirectory, rank_models,
)
from signal_advisor.services.ai_providers.factory import build_invoker

__all__ = [
    "AIInvoker",
    "ModelDescriptor",
    "ChatCompletionInvoker",
    "GeminiInvoker",
    "GeminiModelDirectory",
    "rank_models",
    "build_invoker",
]
