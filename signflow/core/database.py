import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie

from ..core.config import settings
from ..stores.mongo import DOCUMENT_MODELS

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None
    database = None


database = Database()


async def connect_to_mongo():
    """Create database connection"""
    # tz_aware keeps expiry comparisons between aware datetimes
    database.client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
    database.database = database.client[settings.MONGODB_DB_NAME]

    await init_beanie(database=database.database, document_models=DOCUMENT_MODELS)

    logger.info(f"Connected to MongoDB: {settings.MONGODB_DB_NAME}")


async def close_mongo_connection():
    """Close database connection"""
    if database.client:
        database.client.close()
        database.client = None
        logger.info("Disconnected from MongoDB")


async def get_database():
    """Get database instance"""
    return database.database
