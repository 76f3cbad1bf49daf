"""
Persistent store — key-partitioned JSON records on top of SQLAlchemy.

This is the only module that touches the storage medium. Each partition is
stored as one row whose payload is a JSON array of records. Records are plain
dicts; turning them into typed entities (and ISO strings back into datetimes)
is the repository's job.
"""

import json
from datetime import date, datetime
from typing import Any, Dict, List, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from learnchat.config import get_settings
from learnchat.core.exceptions import StorageFailureException
from learnchat.domain.models.partition import Partition

settings = get_settings()
logger = structlog.get_logger(__name__)

USERS = "users"
GROUPS = "groups"
MESSAGES = "messages"
RESPONSES = "responses"
SESSION = "session"

PARTITIONS = (USERS, GROUPS, MESSAGES, RESPONSES, SESSION)

Record = Dict[str, Any]


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _check_partition(name: str) -> None:
    if name not in PARTITIONS:
        raise ValueError(f"Unknown partition: {name}")


class PersistentStore:
    """Durable storage of JSON-serializable records, one JSON array per partition."""

    def __init__(self, session_factory: sessionmaker, max_partition_bytes: int | None = None):
        self.session_factory = session_factory
        self.max_partition_bytes = max_partition_bytes or settings.MAX_PARTITION_BYTES

    def _encode(self, name: str, records: Sequence[Record]) -> str:
        try:
            payload = json.dumps(list(records), default=_json_default, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageFailureException(
                f"Could not serialize partition '{name}'", {"partition": name, "reason": str(e)}
            )
        size = len(payload.encode("utf-8"))
        if size > self.max_partition_bytes:
            raise StorageFailureException(
                f"Quota exceeded for partition '{name}'",
                {"partition": name, "size": size, "limit": self.max_partition_bytes},
            )
        return payload

    def read(self, name: str) -> List[Record]:
        """Read a partition. A partition that was never written reads as empty."""
        _check_partition(name)
        db = self.session_factory()
        try:
            row = db.get(Partition, name)
            if row is None:
                return []
            records = json.loads(row.payload)
        except SQLAlchemyError as e:
            logger.error("Store read failed", partition=name, error=str(e))
            raise StorageFailureException(f"Could not read partition '{name}'", {"partition": name})
        except json.JSONDecodeError as e:
            logger.error("Corrupt partition payload", partition=name, error=str(e))
            raise StorageFailureException(f"Corrupt payload in partition '{name}'", {"partition": name})
        finally:
            db.close()

        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            logger.error("Partition payload is not an array of records", partition=name)
            raise StorageFailureException(f"Corrupt payload in partition '{name}'", {"partition": name})
        return records

    def write(self, name: str, records: Sequence[Record]) -> None:
        self.write_many({name: records})

    def write_many(self, changes: Dict[str, Sequence[Record]]) -> None:
        """Write several partitions in a single transaction: all land or none do."""
        for name in changes:
            _check_partition(name)
        payloads = {name: self._encode(name, records) for name, records in changes.items()}

        db = self.session_factory()
        try:
            for name, payload in payloads.items():
                row = db.get(Partition, name)
                if row is None:
                    db.add(Partition(name=name, payload=payload, version=1))
                else:
                    row.payload = payload
                    row.version = (row.version or 0) + 1
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Store write failed", partitions=sorted(payloads), error=str(e))
            raise StorageFailureException(
                "Could not write to the store", {"partitions": sorted(payloads)}
            )
        finally:
            db.close()

        logger.debug("Partitions written", partitions=sorted(payloads))

    def clear(self, name: str) -> None:
        self.write(name, [])

    def version(self, name: str) -> int:
        """Write counter of a partition (0 when never written)."""
        _check_partition(name)
        db = self.session_factory()
        try:
            row = db.get(Partition, name)
            return row.version if row else 0
        except SQLAlchemyError as e:
            raise StorageFailureException(f"Could not read partition '{name}'", {"partition": name, "reason": str(e)})
        finally:
            db.close()
