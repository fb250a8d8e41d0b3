"""SQLite schema management (code-first approach).

Tables and indexes are declared by the registered modules; this module only
applies them to the database.
"""

import logging

from src.core import db_client
from src.core.module_registry import ensure_default_modules, get_all_indexes, get_all_table_schemas


logger = logging.getLogger(__name__)


async def init_db(*, db_path: str | None = None) -> None:
    """Create every registered table and index if missing."""
    ensure_default_modules()
    conn = await db_client.get_connection(db_path=db_path)

    schemas = get_all_table_schemas()
    for table_name, ddl in schemas.items():
        await conn.execute(ddl)
        logger.debug("Ensured table", extra={"table": table_name})

    for index_sql in get_all_indexes():
        await conn.execute(index_sql)

    await conn.commit()
    logger.info("Database schema initialized", extra={"tables": len(schemas)})
