from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

# AI 供应商调用抽象 (Provider Invoker Interface)
# 两种实现可互换：单模型 Chat Completions 与带模型发现/回退的 Gemini
class AIInvoker(ABC):
    name: str = "ai"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        发送 Prompt 并返回模型生成的原始文本 (不做 JSON 解析)
        """
        pass


@dataclass
class ModelDescriptor:
    """模型发现结果 (生命周期 = 一次分析调用，不持久化)"""
    id: str
    display_name: str = ""
    supported_methods: List[str] = field(default_factory=list)
