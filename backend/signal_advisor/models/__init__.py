from signal_advisor.models.cache import StockDataCache
