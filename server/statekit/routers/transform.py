import logging

from fastapi import APIRouter, HTTPException

from statekit.models import TransformRequest, TransformResponse
from statekit.services.cache import transform_with_cache
from statekit.services.syntax import FactorySyntaxError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["transform"])


def syntax_error_detail(e: FactorySyntaxError, path: str) -> dict:
    return {
        "message": e.msg,
        "line": e.line,
        "column": e.column,
        "path": path,
    }


@router.post("/transform", response_model=TransformResponse, response_model_by_alias=True)
async def transform_module(request: TransformRequest):
    """
    Rewrite the `createClass` factories of one module.

    `changed` is false (and `code`/`map` are empty) when the module needs no
    rewrite.
    """
    try:
        response = transform_with_cache(request.code, request.path, request.options)
    except FactorySyntaxError as e:
        raise HTTPException(status_code=400, detail=syntax_error_detail(e, request.path))

    if response.changed:
        logger.info(f"Transformed {request.path}")
    return response
