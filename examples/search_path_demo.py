#!/usr/bin/env python3
"""
Search Path Demo

Deploys the same table into two PostgreSQL schemas, writes a row into each,
and shows that the selected search path is still in effect after the
connection is dropped and re-established.

Connection settings come from ~/.pgsearchpath/config.yaml or the
PGSEARCHPATH_DB_* environment variables.
"""

from sqlalchemy import Column, Integer, MetaData, String, Table, func, select, text

from pgsearchpath.config import load_config
from pgsearchpath.db import PgSearchPathSchema
from pgsearchpath.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

metadata = MetaData()
things = Table(
    "things",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("thing", String(100), nullable=False),
)


def main():
    config = load_config()
    setup_logging(level=config.logging.level, json_format=config.logging.json_format)

    schema = PgSearchPathSchema(metadata, config.schema).connection(
        config.database.to_connect_info()
    )

    # Example 1: one table structure, two data sets
    for customer in ("demo_customer_1", "demo_customer_2"):
        schema.create_search_path(customer)
        schema.set_search_path(customer)
        schema.deploy()
        with schema.session_scope() as session:
            session.execute(things.insert().values(thing=f"row for {customer}"))

    # Example 2: the selection persists across a reconnect
    schema.set_search_path("demo_customer_1")
    schema.storage.disconnect()

    with schema.session_scope() as session:
        current = session.execute(text("SELECT current_schema()")).scalar()
        count = session.execute(select(func.count()).select_from(things)).scalar()
    logger.info("after_reconnect", current_schema=current, rows=count)

    # Clean up
    for customer in ("demo_customer_1", "demo_customer_2"):
        schema.drop_search_path(customer)
    schema.storage.close()


if __name__ == "__main__":
    main()
