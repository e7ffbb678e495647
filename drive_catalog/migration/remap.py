from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from drive_catalog.errors import IdentityCollision
from drive_catalog.migration.dedup import drop_temporary_table
from drive_catalog.schema import IDENTIFIER_LENGTH, Entity

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
INSERT_BATCH_SIZE = 5000

IdentifierFactory = Callable[[], str]


def new_identifier() -> str:
    return str(uuid.uuid4())


def is_identifier(value: object) -> bool:
    return isinstance(value, str) and IDENTIFIER_PATTERN.match(value) is not None


@dataclass(frozen=True)
class IdentityMap:
    entity: Entity
    table: str
    size: int

    def as_dict(self, connection: Connection) -> Dict[int, str]:
        rows = connection.execute(text(f"SELECT old_id, new_id FROM {self.table}")).all()
        return {int(row.old_id): str(row.new_id) for row in rows}


def build_identity_map(
    connection: Connection,
    entity: Entity,
    id_factory: IdentifierFactory = new_identifier,
) -> IdentityMap:
    """Mint one identifier per surviving row into ``<entity>_id_map``.

    ``new_id`` is unique within the map, so a generator collision fails the
    insert instead of reaching the cutover.
    """
    table = entity.id_map_table
    drop_temporary_table(connection, table)
    connection.execute(
        text(
            f"""
            CREATE TEMPORARY TABLE {table} (
                old_id INTEGER PRIMARY KEY,
                new_id VARCHAR({IDENTIFIER_LENGTH}) NOT NULL UNIQUE
            )
            """
        )
    )

    old_ids = connection.execute(text(f"SELECT id FROM {entity.table} ORDER BY id")).scalars().all()
    insert = text(f"INSERT INTO {table} (old_id, new_id) VALUES (:old_id, :new_id)")
    batch: List[Dict[str, object]] = []
    try:
        for old_id in old_ids:
            batch.append({"old_id": old_id, "new_id": id_factory()})
            if len(batch) >= INSERT_BATCH_SIZE:
                connection.execute(insert, batch)
                batch = []
        if batch:
            connection.execute(insert, batch)
    except IntegrityError as exc:
        raise IdentityCollision(
            f"Generated identifier collided while remapping {entity.table}; "
            "the migration was aborted and nothing was changed."
        ) from exc

    identity_map = IdentityMap(entity=entity, table=table, size=len(old_ids))
    logger.info("catalog.remap entity=%s identifiers=%d", entity.name, identity_map.size)
    return identity_map
