"""Partition model, maps to the 'partitions' table.

One row per logical partition (users, groups, messages, responses, session);
the payload column holds the whole partition as a JSON array.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from learnchat.infrastructure.database import Base


class Partition(Base):
    __tablename__ = "partitions"

    name = Column(String(50), primary_key=True)
    payload = Column(Text, nullable=False, default="[]")
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Partition {self.name} v{self.version}>"
