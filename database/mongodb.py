from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Any, Awaitable, Callable, Optional
import logging

logger = logging.getLogger(__name__)

class Database:
    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self, mongo_url: str, db_name: str):
        """Connect to MongoDB"""
        try:
            self.client = AsyncIOMotorClient(mongo_url)
            self.db = self.client[db_name]
            # Verify connection
            await self.client.admin.command('ping')
            logger.info(f"Connected to MongoDB database: {db_name}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def disconnect(self):
        """Disconnect from MongoDB"""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def get_db(self) -> AsyncIOMotorDatabase:
        """Get database instance"""
        if self.db is None:
            raise Exception("Database not connected")
        return self.db

db = Database()

async def get_database() -> AsyncIOMotorDatabase:
    return db.get_db()


async def run_transaction(
    database: AsyncIOMotorDatabase,
    callback: Callable[[Any], Awaitable[Any]],
    enabled: bool = True
) -> Any:
    """
    Run ``callback(session)`` as one unit of work.

    With transactions enabled the callback runs inside
    ``session.with_transaction``, which commits on success, aborts on error
    and retries transient write conflicts. Without them the callback gets
    ``None`` as its session and runs directly.
    """
    if not enabled:
        return await callback(None)

    async with await database.client.start_session() as session:
        return await session.with_transaction(callback)
