import logging
from typing import Iterable, Optional, Sequence

from signal_advisor.core.config import AnalysisConfig
from signal_advisor.core.exceptions import ConfigurationError
from signal_advisor.schemas.analysis import (
    AnalysisRequest, AnalysisResult, OpenPosition, RawAnalysis, UserProfile,
)
from signal_advisor.schemas.market_data import PriceBar, Quote
from signal_advisor.services.ai_providers.base import AIInvoker
from signal_advisor.services.ai_providers.factory import build_invoker
from signal_advisor.services.indicators import TechnicalIndicators
from signal_advisor.services.market_data import MarketDataService
from signal_advisor.services.prompt_builder import build_prompt
from signal_advisor.services.response_parser import parse_json_response
from signal_advisor.services.sanitizer import sanitize_analysis

logger = logging.getLogger(__name__)

# 信号分析管线 (Signal Analysis Pipeline)
# 核心职责 (Core Responsibilities):
# 1. 清洗 K 线并计算技术指标
# 2. 构建面向用户画像的 Prompt，交给选定的 AI 供应商
# 3. 修复解析 LLM 输出，净化为满足契约的 AnalysisResult
# 管线本身不持久化任何数据 (缓存写入由 MarketDataService 负责)
class SignalPipeline:
    def __init__(
        self,
        config: AnalysisConfig,
        market_data: Optional[MarketDataService] = None,
        invoker: Optional[AIInvoker] = None,
    ):
        self.config = config
        self.market_data = market_data
        self._invoker = invoker

    @property
    def invoker(self) -> AIInvoker:
        # 延迟构建：Key 缺失时在真正调用前才抛 ConfigurationError
        if self._invoker is None:
            self._invoker = build_invoker(self.config)
        return self._invoker

    async def analyze(
        self,
        symbol: str,
        history: Iterable[PriceBar],
        quote: Quote,
        profile: Optional[UserProfile] = None,
        positions: Sequence[OpenPosition] = (),
    ) -> AnalysisResult:
        """
        单次分析 (Run one analysis)

        流程 (Workflow):
        1. 规范化 K 线 -> 构建不可变的 AnalysisRequest
        2. 计算指标 -> 构建 Prompt
        3. 调用 AI -> 修复解析 JSON -> 净化输出 (回写本地指标)

        Raises:
            ConfigurationError / UpstreamUnavailable / RateLimited /
            NoUsableModel / MalformedResponse
        """
        request = AnalysisRequest(
            symbol=symbol,
            history=tuple(TechnicalIndicators.normalize_history(history)),
            quote=quote,
            profile=profile or UserProfile(),
            positions=tuple(positions),
        )

        indicators = TechnicalIndicators.calculate_all(request.history)
        prompt = build_prompt(request, indicators)
        logger.debug(f"Analysis prompt for {symbol}:\n{prompt}")

        invoker = self.invoker
        logger.info(
            f"Analyzing {symbol} with {invoker.name} "
            f"({len(request.history)} bars, {len(request.positions)} positions)"
        )
        text = await invoker.generate(prompt)

        raw = RawAnalysis.model_validate(parse_json_response(text))
        result = sanitize_analysis(raw, symbol, quote.price, indicators)
        logger.info(f"Analysis for {symbol}: {result.signal_level}/{result.action} (confidence={result.confidence})")
        return result

    async def run(
        self,
        symbol: str,
        profile: Optional[UserProfile] = None,
        positions: Sequence[OpenPosition] = (),
    ) -> AnalysisResult:
        """先按缓存策略取得报价与 K 线，再执行 analyze"""
        if self.market_data is None:
            raise ConfigurationError("Market data service is not configured for this pipeline")
        quote, history = await self.market_data.load(symbol)
        return await self.analyze(symbol, history, quote, profile, positions)
