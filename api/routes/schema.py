"""
Schema Routes
=============

Database browsing: connections, tables, column definitions and the
enriched metadata tree.
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import NoSuchTableError

from api.dependencies import get_database, get_enricher, get_registry
from api.schemas import (
    ColumnSchemaResponse,
    ConnectionResponse,
    ErrorResponse,
    MetadataResponse,
    TablesResponse,
    TableSchemaResponse,
)
from chatbi.connections import ConnectionRegistry
from chatbi.database import DatabaseManager
from chatbi.metadata import MetadataEnricher

router = APIRouter(prefix="/api/v1", tags=["Schema"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Unknown connection or table"}}


@router.get("/connections", response_model=list[ConnectionResponse], summary="List connections")
async def list_connections(
    registry: ConnectionRegistry = Depends(get_registry),
) -> list[ConnectionResponse]:
    """Registered connections without credentials."""
    return [ConnectionResponse(**connection.to_public_dict()) for connection in registry.list_connections()]


@router.get("/tables", response_model=TablesResponse, responses=_NOT_FOUND, summary="List tables")
async def list_tables(
    connection_id: str | None = None,
    registry: ConnectionRegistry = Depends(get_registry),
    database: DatabaseManager = Depends(get_database),
) -> TablesResponse:
    connection = registry.resolve(connection_id)
    tables = await asyncio.to_thread(database.list_tables, connection)
    return TablesResponse(connection_id=connection.id, tables=tables)


@router.get(
    "/tables/{table_name}/schema",
    response_model=TableSchemaResponse,
    responses=_NOT_FOUND,
    summary="Table schema",
)
async def table_schema(
    table_name: str,
    connection_id: str | None = None,
    registry: ConnectionRegistry = Depends(get_registry),
    database: DatabaseManager = Depends(get_database),
) -> TableSchemaResponse:
    connection = registry.resolve(connection_id)
    try:
        columns = await asyncio.to_thread(database.table_schema, table_name, connection)
    except NoSuchTableError:
        raise HTTPException(
            status_code=404,
            detail={"error": "TableNotFound", "message": f"Table not found: {table_name}"},
        )
    return TableSchemaResponse(
        table_name=table_name,
        columns=[ColumnSchemaResponse(**column) for column in columns],
    )


@router.get("/metadata", response_model=MetadataResponse, responses=_NOT_FOUND, summary="Enriched metadata")
async def metadata(
    connection_id: str | None = None,
    registry: ConnectionRegistry = Depends(get_registry),
    enricher: MetadataEnricher = Depends(get_enricher),
) -> MetadataResponse:
    """Metadata tree of a connection plus the digest the converter puts in its prompt."""
    connection = registry.resolve(connection_id)
    tree = await asyncio.to_thread(enricher.build_metadata, connection)
    return MetadataResponse(
        connection_id=connection.id,
        metadata=tree.to_dict(),
        summary=enricher.summarize_for_prompt(tree),
    )
