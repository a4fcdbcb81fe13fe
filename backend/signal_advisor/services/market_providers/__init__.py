from signal_advisor.services.market_providers.base import MarketDataProvider
from signal_advisor.services.market_providers.yfinance import YFinanceProvider

__all__ = ["MarketDataProvider", "YFinanceProvider"]
