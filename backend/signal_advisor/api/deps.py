from datetime import timedelta

from fastapi import Depends

from signal_advisor.core.config import AnalysisConfig
from signal_advisor.core.database import SessionLocal
from signal_advisor.services.ai_providers.gemini import GeminiInvoker, GeminiModelDirectory
from signal_advisor.services.ai_service import SignalPipeline
from signal_advisor.services.market_cache import MarketDataCache, SQLAlchemyCacheStore
from signal_advisor.services.market_data import MarketDataService
from signal_advisor.services.market_providers import YFinanceProvider


def get_analysis_config() -> AnalysisConfig:
    return AnalysisConfig.from_settings()


def get_market_cache(config: AnalysisConfig = Depends(get_analysis_config)) -> MarketDataCache:
    return MarketDataCache(
        SQLAlchemyCacheStore(SessionLocal),
        ttl=timedelta(hours=config.cache_ttl_hours),
    )


def get_pipeline(
    config: AnalysisConfig = Depends(get_analysis_config),
    cache: MarketDataCache = Depends(get_market_cache),
) -> SignalPipeline:
    market_data = MarketDataService(YFinanceProvider(), cache, history_size=config.history_size)
    return SignalPipeline(config, market_data=market_data)


def get_model_directory(config: AnalysisConfig = Depends(get_analysis_config)) -> GeminiModelDirectory:
    # Key 缺失时抛 ConfigurationError，由全局处理器映射为 500
    invoker = GeminiInvoker(api_key=config.gemini_api_key, timeout=config.timeout_seconds)
    return invoker.directory
