import asyncio
import sys

from sqlalchemy import inspect

from signal_advisor.core.config import settings
from signal_advisor.core.database import build_engine, init_models


async def init_db(url: str):
    engine = build_engine(url)
    try:
        print(f"🔧 Creating tables on {url} ...")
        await init_models(engine)
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        print(f"✅ Tables ready: {', '.join(tables)}")
    finally:
        await engine.dispose()

if __name__ == "__main__":
    url = sys.argv[1] if len(sys.argv) > 1 else settings.DATABASE_URL
    asyncio.run(init_db(url))
