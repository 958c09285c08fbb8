"""Pydantic schemas for raw pw-dump records and API request/response models."""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class DumpRecord(BaseModel):
    """One object of a pw-dump array. Only id/type are mandatory."""
    model_config = ConfigDict(extra="allow")

    id: int
    type: str
    info: dict[str, Any] | None = None

    @property
    def props(self) -> dict[str, Any]:
        if not self.info:
            return {}
        return self.info.get("props") or {}


class IndexedNodeSchema(BaseModel):
    name: str
    node_id: int


class PortSchema(BaseModel):
    node: str
    port: str
    direction: str
    port_id: int


class ConnectionSchema(BaseModel):
    connection: str
    link_id: int
    state: str


class MutationRequest(BaseModel):
    command: Literal["make", "remove", "masked", "exclusive"]
    spec: str
    dry_run: bool = False


class MutationEventSchema(BaseModel):
    action: str
    connection: str
    link_id: int | None = None
    output_port_id: int | None = None
    input_port_id: int | None = None
    dry_run: bool = False


class MutationResponse(BaseModel):
    ok: bool
    created: int
    removed: int
    unchanged: int
    failed: int
    summary: str
    messages: list[str] = []
    events: list[MutationEventSchema] = []


class BatchRequest(BaseModel):
    script: str
    dry_run: bool = False


class BatchLineSchema(BaseModel):
    line_number: int
    command: str
    ok: bool
    summary: str
    error: str | None = None
    output: list[str] = []


class BatchResponse(BaseModel):
    ok: bool
    succeeded: int
    failed: int
    lines: list[BatchLineSchema] = []


class PatchbayImportRequest(BaseModel):
    xml: str
    mode: Literal["add", "merge", "replace"] = "add"
    dry_run: bool = False
