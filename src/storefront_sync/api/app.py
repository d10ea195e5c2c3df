from __future__ import annotations

from typing import List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..logging import get_logger
from ..mirror.sync import RemoteMirror
from ..repair.resolver import StoreResolver
from ..store.collections import COLLECTIONS
from ..store.repository import Repository


LOG = get_logger("api")


def _parse_int(value: Optional[str], *, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        parsed = default
    if parsed < minimum:
        return minimum
    if parsed > maximum:
        return maximum
    return parsed


def create_app(
    repository: Repository,
    *,
    mirror: Optional[RemoteMirror] = None,
    resolver: Optional[StoreResolver] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing the local collections as JSON."""

    resolver = resolver or StoreResolver(repository)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({
            "status": "ok",
            "db_path": repository.db_path,
            "initialized": repository.is_initialized(),
            "mirror": mirror is not None,
        })

    async def collection_rows(request: Request) -> JSONResponse:
        name = request.path_params["name"]
        if name not in COLLECTIONS:
            raise HTTPException(status_code=404, detail=f"Unknown collection {name!r}")
        qp = request.query_params
        limit = _parse_int(qp.get("limit"), default=100, minimum=1, maximum=1000)
        offset = _parse_int(qp.get("offset"), default=0, minimum=0, maximum=1_000_000)
        rows = repository.get(name)
        return JSONResponse({
            "collection": name,
            "total": len(rows),
            "items": rows[offset:offset + limit],
        })

    async def owned_store(request: Request) -> JSONResponse:
        user_id = request.path_params["user_id"]
        store_id = request.query_params.get("store_id")
        if store_id is None:
            user = repository.get_user(user_id)
            store_id = user.store_id if user else None
        resolution = await run_in_threadpool(resolver.resolve, user_id, store_id)
        if resolution is None:
            raise HTTPException(status_code=404, detail="No storefront available for this account")
        return JSONResponse({
            "store": resolution.store.to_dict(),
            "strategy": resolution.strategy,
            "repaired": resolution.writes,
            "heuristic": resolution.heuristic,
        })

    async def store_by_code(request: Request) -> JSONResponse:
        store = repository.find_store_by_code(request.path_params["code"])
        if store is None:
            raise HTTPException(status_code=404, detail="Storefront not found")
        return JSONResponse(store.to_dict())

    async def sync(_: Request) -> JSONResponse:
        if mirror is None:
            raise HTTPException(status_code=409, detail="Remote mirror disabled")
        added = await run_in_threadpool(mirror.reconcile, repository)
        return JSONResponse({"added": added})

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/collections/{name:str}", collection_rows, methods=["GET"]),
        Route("/api/users/{user_id:str}/store", owned_store, methods=["GET"]),
        Route("/api/stores/code/{code:str}", store_by_code, methods=["GET"]),
        Route("/api/sync", sync, methods=["POST"]),
    ]

    app = Starlette(debug=False, routes=routes)

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    LOG.info(f"API ready over {repository.db_path}")
    return app


__all__ = ["create_app"]
