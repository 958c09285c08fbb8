"""REST API routes."""
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..config import settings
from ..engine.cache import SnapshotCache, TTLPolicy
from ..engine.connections import MutationResult
from ..engine.errors import InputError, MalformedSnapshot, PatchbayError, ResolutionError
from ..engine.pipewire import PipeWireBackend
from ..engine.service import GraphService
from ..models.schemas import (
    BatchLineSchema, BatchRequest, BatchResponse, ConnectionSchema,
    IndexedNodeSchema, MutationEventSchema, MutationRequest, MutationResponse,
    PatchbayImportRequest, PortSchema,
)

router = APIRouter(prefix="/api")

_service: GraphService | None = None


def get_service() -> GraphService:
    """Process-wide service, built lazily from settings."""
    global _service
    if _service is None:
        backend = PipeWireBackend(
            dump_command=settings.dump_command,
            link_command=settings.link_command,
            timeout=settings.command_timeout,
        )
        cache = SnapshotCache(backend.fetch_dump, TTLPolicy(settings.cache_ttl))
        _service = GraphService(backend, cache, sort_key=settings.sort_key)
    return _service


def _http_error(e: PatchbayError) -> HTTPException:
    if isinstance(e, InputError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ResolutionError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, MalformedSnapshot):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _mutation_response(result: MutationResult) -> MutationResponse:
    return MutationResponse(
        ok=result.ok,
        created=result.created,
        removed=result.removed,
        unchanged=result.unchanged,
        failed=result.failed,
        summary=result.summary(),
        messages=result.messages,
        events=[
            MutationEventSchema(
                action=e.action.value,
                connection=e.connection,
                link_id=e.link_id,
                output_port_id=e.output_port_id,
                input_port_id=e.input_port_id,
                dry_run=e.dry_run,
            )
            for e in result.events
        ],
    )


@router.get("/nodes", response_model=list[IndexedNodeSchema])
def list_nodes(pattern: str = "*", service: GraphService = Depends(get_service)):
    """Indexed node names (``name``, ``name~1``...) matching a glob pattern."""
    try:
        entries = service.list_indexed_names(pattern)
    except PatchbayError as e:
        raise _http_error(e)
    return [IndexedNodeSchema(name=str(name), node_id=node_id) for name, node_id in entries]


@router.get("/ports", response_model=list[PortSchema])
def list_ports(
    node: str = "*",
    direction: Literal["in", "out"] | None = None,
    service: GraphService = Depends(get_service),
):
    try:
        entries = service.list_ports(node, direction)
    except PatchbayError as e:
        raise _http_error(e)
    return [
        PortSchema(node=p.node, port=p.port, direction=p.direction.value, port_id=p.port_id)
        for p in entries
    ]


@router.get("/connections", response_model=list[ConnectionSchema])
def list_connections(pattern: str = "*", service: GraphService = Depends(get_service)):
    try:
        entries = service.list_connections(pattern)
    except PatchbayError as e:
        raise _http_error(e)
    return [
        ConnectionSchema(connection=c.connection, link_id=c.link_id, state=c.state)
        for c in entries
    ]


@router.post("/mutations", response_model=MutationResponse)
def run_mutation(request: MutationRequest, service: GraphService = Depends(get_service)):
    """Run make/remove/masked/exclusive.

    Bad input or unresolvable addresses return 4xx before anything changes;
    per-link failures come back as ``ok: false`` with a failure count.
    """
    try:
        result = service.run_mutation(request.command, request.spec, dry_run=request.dry_run)
    except PatchbayError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.post("/batch", response_model=BatchResponse)
def run_batch(request: BatchRequest, service: GraphService = Depends(get_service)):
    batch = service.run_batch(request.script, dry_run=request.dry_run)
    return BatchResponse(
        ok=batch.ok,
        succeeded=batch.succeeded,
        failed=batch.failed,
        lines=[
            BatchLineSchema(
                line_number=line.line_number, command=line.command,
                ok=line.ok, summary=line.summary, error=line.error, output=line.output,
            )
            for line in batch.lines
        ],
    )


@router.get("/patchbay")
def export_patchbay(name: str = "pw_indexed_export", service: GraphService = Depends(get_service)):
    """Current active links as a qpwgraph patchbay document."""
    try:
        xml = service.export_patchbay(name)
    except PatchbayError as e:
        raise _http_error(e)
    return Response(content=xml, media_type="application/xml")


@router.post("/patchbay", response_model=MutationResponse)
def import_patchbay(request: PatchbayImportRequest, service: GraphService = Depends(get_service)):
    try:
        result = service.import_patchbay(request.xml, mode=request.mode, dry_run=request.dry_run)
    except PatchbayError as e:
        raise _http_error(e)
    return _mutation_response(result)


@router.post("/cache/invalidate")
def invalidate_cache(service: GraphService = Depends(get_service)):
    service.cache.invalidate()
    return {"status": "invalidated"}
