from pydantic import BaseModel
from pydantic_settings import BaseSettings
from typing import Optional, Literal

# 占位符 Key：.env 模板中的默认值，视同未配置
PLACEHOLDER_KEYS = {"your_groq_api_key_here", "your_gemini_api_key_here"}

class Settings(BaseSettings):
    PROJECT_NAME: str = "AI Signal Advisor"
    DATABASE_URL: str = "sqlite+aiosqlite:///./signal_advisor.db"

    # AI 供应商切换 (groq = OpenAI 兼容的 Chat Completions, gemini = Google Generative Language)
    AI_PROVIDER: str = "groq"
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    GEMINI_API_KEY: Optional[str] = None

    # 生成参数：低温度保证分析结论的稳定性
    AI_TEMPERATURE: float = 0.3
    AI_MAX_TOKENS: int = 2048
    AI_TIMEOUT_SECONDS: float = 120.0

    # 行情缓存有效期 (小时) 与历史 K 线长度 (compact = 3 个月, full = 1 年)
    CACHE_TTL_HOURS: float = 2.0
    HISTORY_SIZE: str = "full"

    HTTP_PROXY: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()


class AnalysisConfig(BaseModel):
    """
    单次分析管线的显式配置 (Explicit pipeline configuration)

    供应商选择不再读取全局环境变量，而是作为参数注入 SignalPipeline，
    便于在同一进程 (以及测试) 中并行使用两个供应商。
    """
    provider: Literal["groq", "gemini"] = "groq"
    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.3-70b-versatile"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    gemini_api_key: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 2048
    timeout_seconds: float = 120.0
    cache_ttl_hours: float = 2.0
    history_size: Literal["compact", "full"] = "full"

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "AnalysisConfig":
        provider = (s.AI_PROVIDER or "groq").lower()
        return cls(
            provider=provider if provider in ("groq", "gemini") else "groq",
            groq_api_key=s.GROQ_API_KEY,
            groq_model=s.GROQ_MODEL,
            groq_base_url=s.GROQ_BASE_URL,
            gemini_api_key=s.GEMINI_API_KEY,
            temperature=s.AI_TEMPERATURE,
            max_tokens=s.AI_MAX_TOKENS,
            timeout_seconds=s.AI_TIMEOUT_SECONDS,
            cache_ttl_hours=s.CACHE_TTL_HOURS,
            history_size="compact" if s.HISTORY_SIZE == "compact" else "full",
        )


def is_configured_key(key: Optional[str]) -> bool:
    return bool(key and key.strip()) and key.strip() not in PLACEHOLDER_KEYS
