import asyncio
import logging
from typing import List, Tuple

from signal_advisor.schemas.market_data import DataKind, PriceBar, Quote
from signal_advisor.services.indicators import TechnicalIndicators
from signal_advisor.services.market_cache import MarketDataCache
from signal_advisor.services.market_providers.base import MarketDataProvider, HistorySize

logger = logging.getLogger(__name__)

# 市场数据服务 (Market Data Service)
# 职责：协调缓存与数据源，保证同一次分析中报价与 K 线来自同一批次的抓取
class MarketDataService:
    def __init__(self, provider: MarketDataProvider, cache: MarketDataCache, history_size: HistorySize = "full"):
        self.provider = provider
        self.cache = cache
        self.history_size = history_size

    async def load(self, symbol: str) -> Tuple[Quote, List[PriceBar]]:
        """
        获取报价与日 K 线 (Get quote + daily history)

        策略 (Strategy)：
        1. 同时读取 quote / daily 两类缓存
        2. 只有两者都新鲜时才直接使用缓存
        3. 否则 (哪怕只有一类过期) 并行重新抓取两者，并以同一时间戳并行回写
           避免出现“新报价 + 旧指标”的混合新鲜度
        """
        # 1. 检查缓存 (Step 1: Cache Check)
        cached_quote, cached_daily = await asyncio.gather(
            self.cache.get(symbol, DataKind.QUOTE),
            self.cache.get(symbol, DataKind.DAILY),
        )

        if cached_quote is not None and cached_daily is not None:
            logger.info(f"Using cached quote + daily data for {symbol}")
            quote = Quote.model_validate(cached_quote)
            history = TechnicalIndicators.normalize_history(
                PriceBar.model_validate(bar) for bar in cached_daily
            )
            return quote, history

        # 2. 并行抓取 (Step 2: Fetch both in parallel)
        logger.info(f"Fetching fresh quote + daily data for {symbol} (size={self.history_size})")
        quote_task = asyncio.ensure_future(self.provider.get_quote(symbol))
        history_task = asyncio.ensure_future(self.provider.get_history(symbol, self.history_size))
        try:
            quote, history = await asyncio.gather(quote_task, history_task)
        except BaseException:
            # 任一抓取失败 (或调用方取消) 时取消另一个，不留下游离任务
            for task in (quote_task, history_task):
                task.cancel()
            raise
        history = TechnicalIndicators.normalize_history(history)

        # 3. 回写缓存 (Step 3: Write-back, shared timestamp)
        fetched_at = self.cache.now()
        await asyncio.gather(
            self.cache.put(symbol, DataKind.QUOTE, quote.model_dump(mode="json"), fetched_at),
            self.cache.put(symbol, DataKind.DAILY, [bar.model_dump(mode="json") for bar in history], fetched_at),
        )
        return quote, history
