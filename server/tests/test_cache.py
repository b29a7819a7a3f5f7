from pathlib import Path

from statekit.models import TransformOptions, TransformResponse
from statekit.services import cache

CODE = """createClass(() => {
  const state = {}
  return { state }
})
"""


def test_cache_key_depends_on_all_inputs() -> None:
    options = TransformOptions()
    key = cache.cache_key(CODE, "a.ts", options)

    assert key == cache.cache_key(CODE, "a.ts", TransformOptions())
    assert key != cache.cache_key(CODE, "b.ts", options)
    assert key != cache.cache_key(CODE + "\n", "a.ts", options)
    assert key != cache.cache_key(CODE, "a.ts", TransformOptions(debug_mode=True))


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    response = cache.transform_with_cache(CODE, "a.ts", TransformOptions())
    cache.save_result(tmp_path, "abc", response)

    loaded = cache.load_result(tmp_path, "abc")

    assert loaded == response
    assert (tmp_path / ".statekit-cache" / "abc.json").exists()


def test_load_missing_or_corrupt_entry(tmp_path: Path) -> None:
    assert cache.load_result(tmp_path, "missing") is None

    path = cache.get_cache_path(tmp_path, "broken")
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    assert cache.load_result(tmp_path, "broken") is None


def test_transform_with_cache_reuses_stored_result(monkeypatch, tmp_path: Path) -> None:
    first = cache.transform_with_cache(CODE, "a.ts", TransformOptions(), tmp_path)
    assert first.changed
    assert "$proxy({})" in first.code

    def boom(*args, **kwargs):
        raise AssertionError("transform should not run for a cached input")

    monkeypatch.setattr(cache, "transform", boom)

    second = cache.transform_with_cache(CODE, "a.ts", TransformOptions(), tmp_path)

    assert second == first


def test_unchanged_modules_are_cached(tmp_path: Path) -> None:
    response = cache.transform_with_cache("let a = 1\n", "a.ts", TransformOptions(), tmp_path)

    assert response == TransformResponse(changed=False)
    assert len(list((tmp_path / ".statekit-cache").glob("*.json"))) == 1
