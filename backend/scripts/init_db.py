"""初始化数据库表（不使用 alembic 的环境，例如本地 SQLite）"""

import asyncio
import logging
import os
import sys

# Add the parent directory to sys.path to import aluda modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from aluda.core.database import init_db, close_db

# 配置日志
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main():
    logger.info("Initializing database tables...")
    try:
        await init_db()
        logger.info("Database tables initialized successfully.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
