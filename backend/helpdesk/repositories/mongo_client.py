"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    return get_database()[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Directory
    db["departments"].create_index("department_id", unique=True)
    db["departments"].create_index("code")
    users = db["users"]
    users.create_index("user_id", unique=True)
    users.create_index("email", unique=True)
    users.create_index([("department_id", ASCENDING), ("roles", ASCENDING)])
    db["ticket_categories"].create_index("category_id", unique=True)
    db["ticket_categories"].create_index("slug", unique=True)

    # Tickets
    tickets = db["tickets"]
    tickets.create_index("ticket_id", unique=True)
    tickets.create_index("ticket_number", unique=True)
    tickets.create_index("status")
    tickets.create_index([("requester_id", ASCENDING), ("status", ASCENDING)])
    tickets.create_index("assigned_team_id")
    tickets.create_index("created_at", background=True)

    # Approvals
    approvals = db["ticket_approvals"]
    approvals.create_index("approval_id", unique=True)
    approvals.create_index([("ticket_id", ASCENDING), ("sequence", ASCENDING)])
    approvals.create_index([("approver_id", ASCENDING), ("status", ASCENDING)])

    # History
    history = db["ticket_history"]
    history.create_index("history_id", unique=True)
    history.create_index([("ticket_id", ASCENDING), ("created_at", DESCENDING)])

    # Rules
    for name in ("escalation_rules", "automation_rules"):
        rules = db[name]
        rules.create_index("rule_id", unique=True)
        rules.create_index([("is_active", ASCENDING), ("priority", DESCENDING)])
    db["automation_rules"].create_index("trigger_event")

    # Notifications
    notifications = db["notifications"]
    notifications.create_index("notification_id", unique=True)
    notifications.create_index([("user_id", ASCENDING), ("is_read", ASCENDING), ("created_at", DESCENDING)])

    # Email outbox
    outbox = db["email_outbox"]
    outbox.create_index("email_id", unique=True)
    outbox.create_index([("status", ASCENDING), ("next_retry_ts", ASCENDING)])
    outbox.create_index("ticket_id")

    # Job locks
    db["job_locks"].create_index("job_name", unique=True)

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
