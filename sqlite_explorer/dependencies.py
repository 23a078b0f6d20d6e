"""Application context and FastAPI dependencies.

All long-lived components are created once per application in the lifespan
handler and stored on ``app.state.context``. Routers receive them through
the ``Context`` dependency:

    @router.get("/databases")
    async def list_databases(ctx: Context):
        return ctx.metadata.list_databases()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import structlog
from fastapi import Depends, Request

from sqlite_explorer.config import Settings
from sqlite_explorer.connection import ConnectionManager
from sqlite_explorer.database import ControlDB, MetadataStore
from sqlite_explorer.executor import QueryExecutor
from sqlite_explorer.history import HistoryRecorder
from sqlite_explorer.upload import UploadPipeline

logger = structlog.get_logger()


@dataclass
class AppContext:
    settings: Settings
    control_db: ControlDB
    metadata: MetadataStore
    history: HistoryRecorder
    connections: ConnectionManager
    uploads: UploadPipeline
    executor: QueryExecutor

    @classmethod
    def create(cls, settings: Settings) -> "AppContext":
        control_db = ControlDB(Path(settings.control_db_path))
        metadata = MetadataStore(control_db)
        history = HistoryRecorder(control_db)
        connections = ConnectionManager()
        return cls(
            settings=settings,
            control_db=control_db,
            metadata=metadata,
            history=history,
            connections=connections,
            uploads=UploadPipeline(settings, metadata),
            executor=QueryExecutor(connections, history),
        )

    def initialize(self) -> None:
        """Create storage directories and the control database schema."""
        for path in self.settings.storage_paths.values():
            Path(path).mkdir(parents=True, exist_ok=True)
        self.control_db.initialize()
        logger.info("app_context_initialized", data_dir=str(self.settings.data_dir))

    def shutdown(self) -> None:
        self.connections.close()
        logger.info("app_context_shutdown")


def get_context(request: Request) -> AppContext:
    return request.app.state.context


Context = Annotated[AppContext, Depends(get_context)]
