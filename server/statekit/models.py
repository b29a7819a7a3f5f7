from typing import List, Optional
from pydantic import BaseModel, Field

from statekit.config import DEFAULT_RUNTIME_PATH


class TransformOptions(BaseModel):
    # Import intrinsics (watch, computed, ...) from the runtime instead of
    # expecting the module to import them itself.
    emit_intrinsic_imports: bool = Field(default=False, alias="emitIntrinsicImports")
    debug_mode: bool = Field(default=False, alias="debugMode")
    runtime_path: str = Field(default=DEFAULT_RUNTIME_PATH, alias="runtimePath")

    model_config = {
        "populate_by_name": True
    }


class SourceMap(BaseModel):
    version: int = 3
    file: str = ""
    sources: List[str] = Field(default_factory=list)
    sources_content: List[Optional[str]] = Field(default_factory=list, alias="sourcesContent")
    names: List[str] = Field(default_factory=list)
    mappings: str = ""

    model_config = {
        "populate_by_name": True
    }


class TransformResult(BaseModel):
    code: str
    map: SourceMap


class TransformRequest(BaseModel):
    code: str
    path: str
    # Use default_factory to avoid sharing the same options across requests
    options: TransformOptions = Field(default_factory=TransformOptions)


class TransformResponse(BaseModel):
    changed: bool
    code: Optional[str] = None
    map: Optional[SourceMap] = None
