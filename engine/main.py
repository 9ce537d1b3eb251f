"""FastAPI service exposing the mkly editing engine."""

import json as json_module
import logging
import os
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator
from soupsieve import SelectorSyntaxError

from block_locator import locate_block
from compile_compat import apply_compile_compat
from compiler_client import COMPILER_URL, CompileResult, compile_source
from identifiers import inject_block_label, inject_class_annotation, inject_html_class_attribute, next_identifier
from property_patcher import patch_property
from source_lines import is_single_line
from style_graph import StyleGraph
from style_parser import parse_source_style_graph, parse_style_graph
from style_patcher import STYLE_LABEL_PATTERN, StylePatchResult, patch_style, patch_style_variable
from style_pick import StyleSelection, apply_style_pick
from style_serializer import serialize_style_graph
from target_detect import locate_click

logger = logging.getLogger(__name__)

app = FastAPI(title="mkly Editing Engine")

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

MAX_SOURCE_BYTES = 5 * 1024 * 1024


def _check_source(v: str) -> str:
    if len(v.encode("utf-8")) > MAX_SOURCE_BYTES:
        raise ValueError("Source too large (max 5MB)")
    return v


def _check_line(v: Optional[int]) -> Optional[int]:
    if v is not None and v < 1:
        raise ValueError("Line numbers are 1-based")
    return v


def _check_single_line(v: Optional[str]) -> Optional[str]:
    if v is not None and not is_single_line(v):
        raise ValueError("Must not contain line breaks")
    return v


def _error_response(message: str, status_code: int) -> Response:
    return Response(
        content=json_module.dumps({"success": False, "error": message}),
        status_code=status_code,
        media_type="application/json",
    )


def _graph_json(graph: Optional[StyleGraph]) -> Optional[dict]:
    if graph is None:
        return None
    return graph.model_dump(by_alias=True)


def _patch_json(result: StylePatchResult) -> dict:
    return {
        "source": result.source,
        "graph": _graph_json(result.graph),
        "lineDelta": result.line_delta,
        "shiftAfterLine": result.shift_after_line,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "compiler": COMPILER_URL}


class SourceRequest(BaseModel):
    source: str = Field(..., description="Full mkly document text")

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        return _check_source(v)


class LocateBlockRequest(SourceRequest):
    line: int = Field(..., description="1-based cursor line")

    @field_validator("line")
    @classmethod
    def validate_line(cls, v: int) -> int:
        return _check_line(v)


@app.post("/api/locate-block")
async def locate_block_endpoint(request_body: LocateBlockRequest):
    """Block enclosing the cursor, with its leading properties."""
    block = locate_block(request_body.source, request_body.line)
    if block is None:
        return {"block": None}
    return {
        "block": {
            "type": block.type,
            "label": block.label,
            "headerLine": block.header_line,
            "startLine": block.start_line,
            "endLine": block.end_line,
            "properties": block.properties,
            "isSpecial": block.is_special,
        }
    }


class PatchPropertyRequest(SourceRequest):
    start_line: int = Field(..., alias="startLine")
    end_line: int = Field(..., alias="endLine")
    key: str = Field(..., min_length=1, max_length=200)
    value: str = Field("", max_length=10_000)

    @field_validator("start_line", "end_line")
    @classmethod
    def validate_lines(cls, v: int) -> int:
        return _check_line(v)

    @field_validator("key", "value")
    @classmethod
    def validate_single_line(cls, v: str) -> str:
        return _check_single_line(v)


@app.post("/api/patch-property")
async def patch_property_endpoint(request_body: PatchPropertyRequest):
    """Set, insert or (with an empty value) remove one block property."""
    source = patch_property(
        request_body.source,
        request_body.start_line,
        request_body.end_line,
        request_body.key,
        request_body.value,
    )
    return {"source": source, "changed": source != request_body.source}


class ParseStyleRequest(BaseModel):
    source: Optional[str] = None
    text: Optional[str] = Field(None, description="Body of a style block")

    @field_validator("source", "text")
    @classmethod
    def validate_size(cls, v: Optional[str]) -> Optional[str]:
        return _check_source(v) if v is not None else v


@app.post("/api/style-graph/parse")
async def parse_style_endpoint(request_body: ParseStyleRequest):
    """Parse a style block body, or find and parse the style block of a document."""
    if request_body.text is not None:
        graph = parse_style_graph(request_body.text)
    elif request_body.source is not None:
        graph = parse_source_style_graph(request_body.source)
    else:
        return _error_response("Either source or text is required", 422)
    return {"graph": _graph_json(graph)}


class SerializeStyleRequest(BaseModel):
    graph: StyleGraph


@app.post("/api/style-graph/serialize")
async def serialize_style_endpoint(request_body: SerializeStyleRequest):
    return {"text": serialize_style_graph(request_body.graph)}


class PatchStyleRequest(SourceRequest):
    graph: Optional[StyleGraph] = None
    block_type: str = Field(..., alias="blockType", min_length=1)
    target: str = "self"
    prop: str = Field(..., min_length=1, max_length=200)
    value: str = Field("", max_length=10_000)
    label: Optional[str] = Field(None, pattern=STYLE_LABEL_PATTERN)

    @field_validator("block_type", "target", "prop", "value")
    @classmethod
    def validate_single_line(cls, v: str) -> str:
        return _check_single_line(v)


@app.post("/api/patch-style")
async def patch_style_endpoint(request_body: PatchStyleRequest):
    """Apply one style property change and rewrite the style block."""
    graph = request_body.graph
    if graph is None:
        graph = parse_source_style_graph(request_body.source)
    result = patch_style(
        request_body.source,
        graph,
        request_body.block_type,
        request_body.target,
        request_body.prop,
        request_body.value,
        request_body.label,
    )
    return _patch_json(result)


class PatchStyleVariableRequest(SourceRequest):
    graph: Optional[StyleGraph] = None
    name: str = Field(..., min_length=1, max_length=200)
    value: str = Field("", max_length=10_000)

    @field_validator("name", "value")
    @classmethod
    def validate_single_line(cls, v: str) -> str:
        return _check_single_line(v)


@app.post("/api/patch-style-variable")
async def patch_style_variable_endpoint(request_body: PatchStyleVariableRequest):
    graph = request_body.graph
    if graph is None:
        graph = parse_source_style_graph(request_body.source)
    result = patch_style_variable(
        request_body.source, graph, request_body.name, request_body.value
    )
    return _patch_json(result)


class DetectTargetRequest(BaseModel):
    html: str = Field(..., description="Rendered preview HTML")
    selector: str = Field(..., min_length=1, max_length=2000)
    positional: bool = False

    @field_validator("html")
    @classmethod
    def validate_html(cls, v: str) -> str:
        return _check_source(v)


@app.post("/api/detect-target")
async def detect_target_endpoint(request_body: DetectTargetRequest):
    """Resolve a clicked preview element to a style target."""
    try:
        hit = locate_click(request_body.html, request_body.selector, request_body.positional)
    except SelectorSyntaxError as e:
        logger.warning("Invalid selector %r: %s", request_body.selector, e)
        return _error_response("Invalid selector", 400)
    if hit is None:
        return {"target": None}
    return {
        "target": hit.target,
        "blockType": hit.block_type,
        "blockLine": hit.block_line,
        "targetLine": hit.target_line,
        "targetTag": hit.target_tag,
    }


@app.post("/api/next-identifier")
async def next_identifier_endpoint(request_body: SourceRequest):
    return {"identifier": next_identifier(request_body.source)}


class InjectClassRequest(SourceRequest):
    line: int
    class_name: str = Field(..., alias="className", pattern=r"^[A-Za-z_][\w-]*$")
    verbatim: bool = False

    @field_validator("line")
    @classmethod
    def validate_line(cls, v: int) -> int:
        return _check_line(v)


@app.post("/api/inject-class")
async def inject_class_endpoint(request_body: InjectClassRequest):
    """Annotate a content line (or its first HTML tag) with a class."""
    inject = inject_html_class_attribute if request_body.verbatim else inject_class_annotation
    source = inject(request_body.source, request_body.line, request_body.class_name)
    return {"source": source}


class InjectLabelRequest(SourceRequest):
    header_line: int = Field(..., alias="headerLine")
    label: str = Field(..., pattern=r"^[\w-]+$")

    @field_validator("header_line")
    @classmethod
    def validate_line(cls, v: int) -> int:
        return _check_line(v)


@app.post("/api/inject-label")
async def inject_label_endpoint(request_body: InjectLabelRequest):
    source = inject_block_label(request_body.source, request_body.header_line, request_body.label)
    return {"source": source}


class SelectionBody(BaseModel):
    block_type: str = Field(..., alias="blockType")
    target: str = "self"
    block_line: int = Field(..., alias="blockLine")
    label: Optional[str] = Field(None, pattern=STYLE_LABEL_PATTERN)
    target_line: Optional[int] = Field(None, alias="targetLine")
    target_tag: Optional[str] = Field(None, alias="targetTag")

    @field_validator("block_line", "target_line")
    @classmethod
    def validate_lines(cls, v: Optional[int]) -> Optional[int]:
        return _check_line(v)

    @field_validator("block_type", "target")
    @classmethod
    def validate_single_line(cls, v: str) -> str:
        return _check_single_line(v)


class StylePickRequest(SourceRequest):
    graph: Optional[StyleGraph] = None
    selection: SelectionBody
    prop: str = Field(..., min_length=1, max_length=200)
    value: str = Field("", max_length=10_000)
    verbatim: bool = False

    @field_validator("prop", "value")
    @classmethod
    def validate_single_line(cls, v: str) -> str:
        return _check_single_line(v)


@app.post("/api/style-pick")
async def style_pick_endpoint(request_body: StylePickRequest):
    """Apply a style change to an element picked in the preview."""
    graph = request_body.graph
    if graph is None:
        graph = parse_source_style_graph(request_body.source)
    picked = request_body.selection
    selection = StyleSelection(
        block_type=picked.block_type,
        target=picked.target,
        block_line=picked.block_line,
        label=picked.label,
        target_line=picked.target_line,
        target_tag=picked.target_tag,
    )
    result = apply_style_pick(
        request_body.source,
        graph,
        selection,
        request_body.prop,
        request_body.value,
        verbatim=request_body.verbatim,
    )
    if result is None:
        return {"source": None}
    return {
        "source": result.source,
        "graph": _graph_json(result.graph),
        "lineDelta": result.line_delta,
        "shiftAfterLine": result.shift_after_line,
        "selection": {
            "blockType": result.selection.block_type,
            "target": result.selection.target,
            "blockLine": result.selection.block_line,
            "label": result.selection.label,
            "targetLine": result.selection.target_line,
            "targetTag": result.selection.target_tag,
        },
    }


@app.post("/api/compile")
async def compile_endpoint(request_body: SourceRequest):
    """Compile through the mkly compiler and patch in descendant-target support."""
    try:
        result: CompileResult = await compile_source(request_body.source)
    except httpx.ConnectError:
        logger.error(f"Connection error to compiler: {COMPILER_URL}")
        return _error_response("Compiler unavailable", 502)
    except httpx.TimeoutException:
        logger.error("Request to compiler timed out")
        return _error_response("Compile timed out", 504)
    except (ValidationError, json_module.JSONDecodeError) as e:
        logger.error(f"Compiler returned an invalid payload: {e}")
        return _error_response("Invalid response from compiler", 502)
    except httpx.HTTPStatusError as e:
        logger.error(f"Compiler responded with {e.response.status_code}")
        return _error_response("Compiler error", 502)
    except Exception:
        logger.exception("Compile failed")
        return _error_response("Compile failed", 500)

    html = apply_compile_compat(request_body.source, result.html, result.style_graph)
    return {
        "success": True,
        "html": html,
        "errors": [e.model_dump() for e in result.errors],
        "sourceMap": result.source_map,
        "styleGraph": _graph_json(result.style_graph),
    }
