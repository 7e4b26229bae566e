from fastapi_users.db import SQLAlchemyBaseUserTableUUID
from sqlalchemy import Column, DateTime, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

from .database import Base


# ---------------------------
# AUTH USER
# ---------------------------
class User(SQLAlchemyBaseUserTableUUID, Base):
    """Credentials only; profile fields (name, verified, admin) live in the KV store."""
    __tablename__ = "user"

    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ---------------------------
# KEY-VALUE STORE
# ---------------------------
class KVEntry(Base):
    __tablename__ = "kv_store"

    # prefix-encoded keys: "posts:<id>", "comments:<postId>:<id>", ...
    key = Column(Text, primary_key=True)
    value = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    def __repr__(self):
        return f"<KVEntry {self.key}>"
