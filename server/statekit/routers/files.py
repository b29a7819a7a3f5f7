from fastapi import APIRouter, HTTPException, Query
from pathlib import Path
from fastapi.responses import PlainTextResponse

from statekit.models import TransformOptions
from statekit.routers.transform import syntax_error_detail
from statekit.services.syntax import FactorySyntaxError
from statekit.services.transform import transform

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("/transformed", response_class=PlainTextResponse)
async def get_transformed_file(
    path: str = Query(..., description="Absolute path to the file"),
    debug: bool = Query(False, description="Emit debug cells and names"),
    emit_globals: bool = Query(False, alias="globals", description="Import intrinsics from the runtime"),
):
    """
    Get the rewritten content of a module, or its original content when no
    rewrite is needed.
    """
    file_path = Path(path)

    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found")

    if not file_path.is_file():
        raise HTTPException(status_code=400, detail="Path is not a file")

    try:
        code = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=500, detail=f"Failed to read file: {str(e)}")

    options = TransformOptions(debug_mode=debug, emit_intrinsic_imports=emit_globals)
    try:
        result = transform(code, str(file_path), options)
    except FactorySyntaxError as e:
        raise HTTPException(status_code=400, detail=syntax_error_detail(e, str(file_path)))

    return result.code if result is not None else code
