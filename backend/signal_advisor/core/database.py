from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy import event
from signal_advisor.core.config import settings

# 行情缓存存储引擎 (Cache Store Engine)
# 仅承载 stock_data_cache 一张表；建议/持仓等业务数据由外部持久层负责。
# 采用异步驱动，保证抓取行情、调用 LLM 等耗时操作期间不阻塞事件循环。

def build_engine(url: str):
    """按 URL 构建异步引擎；SQLite 文件库启用 WAL 以支持读写并发"""
    is_sqlite = "sqlite" in url
    engine = create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        connect_args={
            "check_same_thread": False,
            "timeout": 30,  # 数据库被锁时最多等待 30 秒
        } if is_sqlite else {}
    )

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")      # 读写并发
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

    return engine


def build_session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False  # 提交后仍可读取属性
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)

# 声明基类：所有 ORM Model 继承它，create_all 才能找到对应的表
Base = declarative_base()


async def init_models(target_engine=None):
    """建表 (幂等)，供启动脚本与测试使用"""
    # 导入模型以注册到 metadata
    from signal_advisor.models import StockDataCache  # noqa: F401

    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
