"""Creates the metadata table when it does not exist yet."""

from __future__ import annotations

import logging

from sqlalchemy import Engine, inspect

from webproject.db.base import Base
from webproject.models import ImageUpload

log = logging.getLogger(__name__)


def init_schema(engine: Engine) -> dict[str, str]:
    table = ImageUpload.__table__
    existed = inspect(engine).has_table(table.name)
    Base.metadata.create_all(engine, tables=[table], checkfirst=True)
    if existed:
        log.info("Table %s already present", table.name)
        message = "Table already initialized"
    else:
        log.info("Table %s created", table.name)
        message = "Table initialized successfully"
    return {"message": message, "table": table.name}
