from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.future import select

from signal_advisor.models.cache import StockDataCache
from signal_advisor.schemas.market_data import DataKind

logger = logging.getLogger(__name__)

# 默认新鲜度窗口：2 小时 (等于或超过窗口的缓存视为不存在)
DEFAULT_TTL = timedelta(hours=2)


def _as_utc_naive(value: datetime) -> datetime:
    """统一为 naive UTC 时间 (SQLite 不保存时区信息)"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass
class CacheEntry:
    symbol: str
    data_kind: DataKind
    payload: Any
    fetched_at: datetime


# 缓存存储抽象基类 (Cache Store Interface)
# 存储机制属于外部协作方；网关只依赖 fetch / upsert 两个操作
class CacheStore(ABC):
    @abstractmethod
    async def fetch(self, symbol: str, kind: DataKind) -> Optional[CacheEntry]:
        pass

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None:
        pass


class InMemoryCacheStore(CacheStore):
    """进程内存储，适用于单进程部署与测试"""

    def __init__(self):
        self._entries: Dict[Tuple[str, DataKind], CacheEntry] = {}

    async def fetch(self, symbol: str, kind: DataKind) -> Optional[CacheEntry]:
        return self._entries.get((symbol, kind))

    async def upsert(self, entry: CacheEntry) -> None:
        self._entries[(entry.symbol, entry.data_kind)] = entry


class SQLAlchemyCacheStore(CacheStore):
    """
    基于 stock_data_cache 表的存储 (SQLAlchemy Async)
    每次操作独立开启会话，两个 upsert 可以并发执行
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def fetch(self, symbol: str, kind: DataKind) -> Optional[CacheEntry]:
        async with self.session_factory() as db:
            stmt = select(StockDataCache).where(
                StockDataCache.symbol == symbol,
                StockDataCache.data_type == kind.value
            )
            result = await db.execute(stmt)
            row = result.scalar_one_or_none()
            if not row:
                return None
            return CacheEntry(symbol=row.symbol, data_kind=kind, payload=row.data, fetched_at=row.fetched_at)

    async def upsert(self, entry: CacheEntry) -> None:
        # 以 (symbol, data_type) 唯一约束做冲突更新
        stmt = insert(StockDataCache).values(
            symbol=entry.symbol,
            data_type=entry.data_kind.value,
            data=entry.payload,
            fetched_at=_as_utc_naive(entry.fetched_at),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["symbol", "data_type"],
            set_={"data": stmt.excluded.data, "fetched_at": stmt.excluded.fetched_at},
        )
        async with self.session_factory() as db:
            try:
                await db.execute(stmt)
                await db.commit()
            except Exception:
                await db.rollback()
                raise


# 行情缓存网关 (Market Data Cache Gateway)
# 职责：在存储之上实施新鲜度策略，过期条目对调用方而言等同于不存在
class MarketDataCache:
    def __init__(self, store: CacheStore, ttl: timedelta = DEFAULT_TTL, clock=None):
        self.store = store
        self.ttl = ttl
        self._clock = clock or datetime.utcnow

    def now(self) -> datetime:
        return _as_utc_naive(self._clock())

    def is_fresh(self, fetched_at: datetime) -> bool:
        return self.now() - _as_utc_naive(fetched_at) < self.ttl

    async def get(self, symbol: str, kind: DataKind) -> Optional[Any]:
        entry = await self.store.fetch(symbol, kind)
        if entry is None:
            logger.info(f"Cache miss for {symbol}/{kind.value}")
            return None
        if not self.is_fresh(entry.fetched_at):
            logger.info(f"Cache stale for {symbol}/{kind.value} (fetched_at={entry.fetched_at})")
            return None
        return entry.payload

    async def put(self, symbol: str, kind: DataKind, payload: Any, fetched_at: Optional[datetime] = None) -> None:
        await self.store.upsert(CacheEntry(
            symbol=symbol,
            data_kind=kind,
            payload=payload,
            fetched_at=_as_utc_naive(fetched_at or self.now()),
        ))
