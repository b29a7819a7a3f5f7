import hashlib
import json
from pathlib import Path
from typing import Optional

from statekit.config import CACHE_DIR_NAME
from statekit.models import TransformOptions, TransformResponse
from statekit.services.transform import transform


def cache_key(code: str, path: str, options: TransformOptions) -> str:
    payload = json.dumps(
        {"code": code, "path": path, "options": options.model_dump(by_alias=True)},
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def get_cache_path(cache_dir: Path, key: str) -> Path:
    return cache_dir / CACHE_DIR_NAME / f"{key}.json"


def save_result(cache_dir: Path, key: str, response: TransformResponse) -> None:
    cache_path = get_cache_path(cache_dir, key)
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    with open(cache_path, "w", encoding="utf-8") as f:
        f.write(response.model_dump_json(indent=2, by_alias=True))


def load_result(cache_dir: Path, key: str) -> Optional[TransformResponse]:
    cache_path = get_cache_path(cache_dir, key)
    if not cache_path.exists():
        return None

    try:
        with open(cache_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            return TransformResponse.model_validate(data)
    except (OSError, ValueError) as e:
        print(f"⚠️ Failed to load cache: {e}")
        return None


def transform_with_cache(
    code: str,
    path: str,
    options: TransformOptions,
    cache_dir: Optional[Path] = None,
) -> TransformResponse:
    """
    Transform `code`, reusing a stored result for identical input when a
    cache directory is given. Unchanged modules are cached too.
    """
    key = cache_key(code, path, options) if cache_dir is not None else None
    if key is not None:
        cached = load_result(cache_dir, key)
        if cached is not None:
            return cached

    result = transform(code, path, options)
    if result is None:
        response = TransformResponse(changed=False)
    else:
        response = TransformResponse(changed=True, code=result.code, map=result.map)

    if key is not None:
        save_result(cache_dir, key, response)
    return response
