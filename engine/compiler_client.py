"""Client for the external mkly compiler service."""

import logging
import os
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from style_graph import StyleGraph
from style_parser import parse_source_style_graph

logger = logging.getLogger(__name__)

COMPILER_URL = os.getenv("COMPILER_URL", "http://localhost:3002/compile")
COMPILE_TIMEOUT = float(os.getenv("COMPILE_TIMEOUT", "10"))


class CompileError(BaseModel):
    severity: str = "error"
    line: Optional[int] = None
    message: str


class CompileResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    html: str = ""
    errors: list[CompileError] = Field(default_factory=list)
    source_map: Optional[dict] = Field(default=None, alias="sourceMap")
    style_graph: Optional[StyleGraph] = Field(default=None, alias="styleGraph")


async def compile_source(source: str) -> CompileResult:
    """Compile ``source`` remotely.

    Transport errors (``httpx.ConnectError``, ``httpx.TimeoutException``,
    ``httpx.HTTPStatusError``) and ``pydantic.ValidationError`` for a
    malformed reply propagate to the caller.
    """
    async with httpx.AsyncClient(timeout=COMPILE_TIMEOUT) as client:
        response = await client.post(COMPILER_URL, json={"source": source})
        response.raise_for_status()
        payload = response.json()

    result = CompileResult.model_validate(payload)
    if result.style_graph is None:
        logger.debug("Compiler returned no style graph; parsing it locally")
        result = result.model_copy(update={"style_graph": parse_source_style_graph(source)})
    if result.errors:
        logger.info("Compile finished with %d diagnostics", len(result.errors))
    return result
