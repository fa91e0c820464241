"""
Catalog Loaders
Reads item records from a JSON file or a SQL table so a whole catalog can be
pushed through the ingestion pipeline.

Usage:
    python -m app.ingestion.catalog_loader --file data/catalog.json
    python -m app.ingestion.catalog_loader --table movies --db-url sqlite:///./data/catalog.db
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import pydantic
from sqlalchemy import create_engine, inspect, text

from app.config import settings
from app.embedding.embedder import EmbeddingProvider
from app.embedding.vector_store import VectorStoreManager
from app.errors import ValidationError
from app.ingestion.pipeline import IngestionPipeline
from app.models import ItemRecord

logger = logging.getLogger(__name__)

ITEM_COLUMNS = ["id", "title", "year", "categories", "participants", "description", "attributes"]
LIST_COLUMNS = {"categories", "participants"}


def _to_records(raw_items: list[Any], source: str) -> list[ItemRecord]:
    records: list[ItemRecord] = []
    for i, raw in enumerate(raw_items):
        try:
            records.append(ItemRecord.model_validate(raw))
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid item {i} in {source}: {e}") from e
    return records


def load_catalog_file(file_path: str) -> list[ItemRecord]:
    """
    Load item records from a JSON file.

    The file holds either an array of item objects or ``{"items": [...]}``.
    Movie-style keys (genres, cast, plot, metadata) are accepted.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: If the file shape or any item is invalid.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {file_path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Catalog {path.name} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("items", data.get("movies"))
    if not isinstance(data, list):
        raise ValidationError(f"Catalog {path.name} must contain a list of items")

    records = _to_records(data, path.name)
    logger.info(f"Loaded {len(records)} items from {path.name}")
    return records


def _decode_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    value = str(value).strip()
    if value.startswith("["):
        return [str(v) for v in json.loads(value)]
    return [part.strip() for part in value.split(",") if part.strip()]


def _decode_row(row: dict) -> dict:
    item = {col: row[col] for col in ITEM_COLUMNS if col in row and row[col] is not None}
    for col in LIST_COLUMNS & item.keys():
        item[col] = _decode_list(item[col])
    if isinstance(item.get("attributes"), str):
        item["attributes"] = json.loads(item["attributes"] or "{}")
    if "id" in item:
        item["id"] = str(item["id"])
    return item


def load_from_database(
    table_name: str,
    where_clause: Optional[str] = None,
    db_url: Optional[str] = None,
    limit: int = 1000,
) -> list[ItemRecord]:
    """
    Load item records from a SQL database table.

    The table must have a ``title`` column; ``id``, ``year``, ``categories``,
    ``participants``, ``description`` and ``attributes`` are read when present.
    List columns may hold a JSON array or comma-separated text; ``attributes``
    may hold a JSON object.

    Args:
        table_name: Name of the database table.
        where_clause: Optional SQL WHERE clause (without 'WHERE' keyword).
        db_url: Database connection URL (defaults to settings.database_url).
        limit: Maximum number of rows to load.

    Returns:
        List of validated item records.

    Raises:
        ValueError: If the table or the title column does not exist.
        ValidationError: If a row does not form a valid item.
    """
    db_url = db_url or settings.database_url
    engine = create_engine(db_url)

    # Validate table exists
    inspector = inspect(engine)
    available_tables = inspector.get_table_names()
    if table_name not in available_tables:
        raise ValueError(
            f"Table '{table_name}' not found. Available tables: {available_tables}"
        )

    table_columns = [col["name"] for col in inspector.get_columns(table_name)]
    if "title" not in table_columns:
        raise ValueError(f"Table '{table_name}' has no 'title' column. Available: {table_columns}")

    select_cols = [col for col in ITEM_COLUMNS if col in table_columns]
    query = f"SELECT {', '.join(select_cols)} FROM {table_name}"  # noqa: S608
    if where_clause:
        query += f" WHERE {where_clause}"
    query += f" LIMIT {limit}"

    logger.info(f"Loading items from table: {table_name}")

    with engine.connect() as conn:
        rows = conn.execute(text(query)).mappings().all()

    raw_items = []
    for i, row in enumerate(rows):
        try:
            raw_items.append(_decode_row(dict(row)))
        except json.JSONDecodeError as e:
            raise ValidationError(f"Row {i} of {table_name} has malformed JSON: {e}") from e

    records = _to_records(raw_items, table_name)
    logger.info(f"Loaded {len(records)} items from {table_name}")
    return records


async def ingest_catalog(records: list[ItemRecord], batch_size: int = 100) -> list[str]:
    """Push records through the ingestion pipeline, one upsert per batch."""
    settings.ensure_directories()
    pipeline = IngestionPipeline(EmbeddingProvider(), VectorStoreManager())

    ids: list[str] = []
    for start in range(0, len(records), batch_size):
        result = await pipeline.ingest(records[start:start + batch_size])
        ids.extend(result.ids)
    return ids


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Ingest an item catalog into the vector store")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="JSON catalog file")
    source.add_argument("--table", help="SQL table holding item rows")
    parser.add_argument("--db-url", default=None, help="Database URL (defaults to DATABASE_URL)")
    parser.add_argument("--where", default=None, help="Optional SQL WHERE clause")
    parser.add_argument("--limit", type=int, default=1000)
    parser.add_argument("--batch-size", type=int, default=100)
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())

    if args.file:
        records = load_catalog_file(args.file)
    else:
        records = load_from_database(
            args.table, where_clause=args.where, db_url=args.db_url, limit=args.limit
        )

    if not records:
        logger.warning("No items to ingest")
        return

    ids = asyncio.run(ingest_catalog(records, batch_size=args.batch_size))
    logger.info(f"Ingested {len(ids)} items")


if __name__ == "__main__":
    main()
