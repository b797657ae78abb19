from inbox_api.repositories.redis_dedup import RedisDedupStore
from inbox_api.repositories.sql_store import MessageTableDedup, SqlStore

__all__ = [
    "SqlStore",
    "MessageTableDedup",
    "RedisDedupStore",
]
