"""FastAPI application exposing search, semantic search and uploads."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from docsearch.config import AppConfig
from docsearch.index.orchestrator import SearchOrchestrator
from docsearch.ingestion.extract import SUPPORTED_EXTENSIONS, is_supported
from docsearch.models import SearchOptions
from docsearch.service import build_orchestrator

LOGGER = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024


class SearchPayload(BaseModel):
    query: str
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)
    file_types: List[str] | None = None


class VectorSearchPayload(BaseModel):
    query: str
    limit: int = Field(4, ge=1, le=20)


def get_orchestrator(request: Request) -> SearchOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Search service is starting up")
    return orchestrator


def _require_query(query: str) -> str:
    query = query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")
    return query


def create_app(
    orchestrator: SearchOrchestrator | None = None,
    config: AppConfig | None = None,
) -> FastAPI:
    """Build the app; without an orchestrator one is created on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        owned = orchestrator is None
        if owned:
            app.state.orchestrator = await asyncio.to_thread(
                build_orchestrator, config or AppConfig.from_env()
            )
        else:
            app.state.orchestrator = orchestrator
        try:
            yield
        finally:
            if owned:
                app.state.orchestrator.shutdown()
            app.state.orchestrator = None

    app = FastAPI(title="DocSearch", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.orchestrator = orchestrator

    @app.post("/search")
    async def search_documents(
        payload: SearchPayload, service: SearchOrchestrator = Depends(get_orchestrator)
    ) -> dict[str, Any]:
        query = _require_query(payload.query)
        response = service.search(
            query,
            SearchOptions(limit=payload.limit, offset=payload.offset, file_types=payload.file_types),
        )
        return response.to_dict()

    @app.post("/vector-search")
    async def vector_search(
        payload: VectorSearchPayload, service: SearchOrchestrator = Depends(get_orchestrator)
    ) -> dict[str, Any]:
        query = _require_query(payload.query)
        result = await asyncio.to_thread(service.vector_search, query, payload.limit)
        if not result.success:
            return {"success": False, "error": result.error, "retryable": result.retryable}
        return {"success": True, "data": [item.to_dict() for item in result.data or []]}

    @app.get("/stats")
    async def index_stats(service: SearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
        stats = service.get_stats()
        return {"document_count": stats.document_count, "vector_available": stats.vector_available}

    @app.get("/health")
    async def health(service: SearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
        return service.health()

    @app.get("/documents")
    async def list_documents(service: SearchOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
        documents = [meta.to_indexed().to_dict() for meta in service.list_documents()]
        return {"documents": documents, "count": len(documents)}

    @app.post("/documents")
    async def upload_document(
        file: UploadFile = File(...), service: SearchOrchestrator = Depends(get_orchestrator)
    ) -> dict[str, Any]:
        file_name = file.filename or ""
        if not is_supported(file_name):
            raise HTTPException(
                status_code=400,
                detail=f"File type not supported. Allowed types: {', '.join(SUPPORTED_EXTENSIONS)}",
            )
        data = await file.read()
        if len(data) > MAX_UPLOAD_BYTES:
            raise HTTPException(
                status_code=413,
                detail=f"File size exceeds maximum allowed size of {MAX_UPLOAD_BYTES // (1024 * 1024)}MB",
            )

        metadata, result = await asyncio.to_thread(
            service.ingest_upload,
            data,
            file_name,
            file.content_type or "application/octet-stream",
        )
        return {
            "status": "ok",
            "document": metadata.to_indexed().to_dict(),
            "indexed": result.indexed,
            "vector_indexed": result.vector_indexed,
            "warning": result.error,
        }

    @app.delete("/documents/{doc_id}")
    async def delete_document(
        doc_id: str, service: SearchOrchestrator = Depends(get_orchestrator)
    ) -> dict[str, Any]:
        deleted = await asyncio.to_thread(service.delete_upload, doc_id)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Document with ID {doc_id} not found")
        return {"status": "ok", "deleted_id": doc_id}

    @app.post("/vector-index/rebuild")
    async def rebuild_vector_index(
        service: SearchOrchestrator = Depends(get_orchestrator),
    ) -> dict[str, Any]:
        result = await asyncio.to_thread(service.rebuild_vector_index)
        if not result.success:
            return {"success": False, "error": result.error, "retryable": result.retryable}
        return {"success": True, "data": {"chunk_count": result.data}}

    return app


app = create_app()
