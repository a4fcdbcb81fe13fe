from abc import ABC, abstractmethod
from typing import List, Literal

from signal_advisor.schemas.market_data import PriceBar, Quote

HistorySize = Literal["compact", "full"]

# 数据提供商抽象基类 (Interface/Abstract Base Class)
# 行情来源必须实现以下两个方法；找不到代码时抛 SymbolNotFound，其余失败抛 UpstreamUnavailable
class MarketDataProvider(ABC):
    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """
        获取实时报价（最新价、昨收、涨跌幅等）
        """
        pass

    @abstractmethod
    async def get_history(self, symbol: str, size: HistorySize = "compact") -> List[PriceBar]:
        """
        获取日 K 线 (升序，无重复日期，已剔除收盘价 <= 0 的数据)
        - compact: 约 3 个月
        - full: 约 1 年
        """
        pass
