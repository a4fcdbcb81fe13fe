import yfinance as yf
from typing import List
import os
import logging
import asyncio
import pandas as pd

from signal_advisor.core.config import settings
from signal_advisor.core.exceptions import SymbolNotFound, UpstreamUnavailable
from signal_advisor.schemas.market_data import PriceBar, Quote
from signal_advisor.services.indicators import TechnicalIndicators
from signal_advisor.services.market_providers.base import MarketDataProvider, HistorySize

logger = logging.getLogger(__name__)

# compact ≈ 3 个月, full ≈ 1 年
HISTORY_PERIODS = {"compact": "3mo", "full": "1y"}

# Yahoo Finance 数据提供商实现
class YFinanceProvider(MarketDataProvider):
    def __init__(self, ticker_factory=None):
        # 如果配置了 HTTP_PROXY，注入环境变量供 yfinance 使用
        if settings.HTTP_PROXY:
            os.environ["HTTP_PROXY"] = settings.HTTP_PROXY
            os.environ["HTTPS_PROXY"] = settings.HTTP_PROXY
        self._ticker_factory = ticker_factory or yf.Ticker

    async def _run_sync(self, func, *args, **kwargs):
        """
        内部辅助方法：将 yfinance 的同步网络调用封装在线程池中运行，避免阻塞事件循环。
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

    async def _fetch_frame(self, symbol: str, period: str) -> pd.DataFrame:
        try:
            tick = self._ticker_factory(symbol)
            hist = await self._run_sync(tick.history, period=period, interval="1d")
        except Exception as e:
            logger.error(f"yfinance history error for {symbol}: {e}")
            raise UpstreamUnavailable(f"Failed to fetch data for \"{symbol}\": {e}") from e

        if hist is None or hist.empty:
            raise SymbolNotFound(
                f"No data found for \"{symbol}\". Check the ticker symbol is correct (e.g. GOOGL, AAPL, TSLA)."
            )
        return hist

    @staticmethod
    def _frame_to_bars(hist: pd.DataFrame) -> List[PriceBar]:
        """DataFrame -> PriceBar 列表，缺失值与收盘价 <= 0 的行被剔除"""
        bars = []
        for index, row in hist.iterrows():
            close = row.get("Close")
            if close is None or pd.isna(close) or float(close) <= 0:
                continue

            def _num(key, default):
                val = row.get(key)
                return default if val is None or pd.isna(val) else float(val)

            bars.append(PriceBar(
                date=index.date() if hasattr(index, "date") else index,
                open=_num("Open", 0.0),
                high=_num("High", 0.0),
                low=_num("Low", 0.0),
                close=float(close),
                volume=max(_num("Volume", 0.0), 0.0),
            ))
        return TechnicalIndicators.normalize_history(bars)

    async def get_quote(self, symbol: str) -> Quote:
        """抓取实时报价：取最近两根日 K，最新收盘为现价，前一根收盘为昨收"""
        bars = self._frame_to_bars(await self._fetch_frame(symbol, "5d"))
        if not bars:
            raise SymbolNotFound(f"No quote data found for \"{symbol}\".")

        last = bars[-1]
        previous_close = bars[-2].close if len(bars) > 1 else last.open
        return Quote.from_prices(
            symbol=symbol,
            price=last.close,
            previous_close=previous_close,
            open=last.open or last.close,
            high=last.high or last.close,
            low=last.low or last.close,
            volume=last.volume,
            latest_trading_day=last.date,
        )

    async def get_history(self, symbol: str, size: HistorySize = "compact") -> List[PriceBar]:
        """抓取日 K 线 (升序、去重)"""
        period = HISTORY_PERIODS.get(size, HISTORY_PERIODS["compact"])
        bars = self._frame_to_bars(await self._fetch_frame(symbol, period))
        if not bars:
            raise SymbolNotFound(f"No historical data found for \"{symbol}\".")
        return bars
