from statekit.services.edit_buffer import EditBuffer
from statekit.services.source_map import encode_mappings, encode_vlq


def test_encode_vlq() -> None:
    assert encode_vlq(0) == "A"
    assert encode_vlq(1) == "C"
    assert encode_vlq(-1) == "D"
    assert encode_vlq(15) == "e"
    assert encode_vlq(16) == "gB"


def test_encode_mappings_uses_relative_fields() -> None:
    lines = [[(0, 0, 0, 0), (4, 0, 0, 4)], [], [(2, 0, 1, 0)]]

    assert encode_mappings(lines) == "AAAA,IAAI;;EACJ"


def test_prepended_line_shifts_mappings() -> None:
    buffer = EditBuffer("ab\ncd")
    buffer.prepend("// x\n")

    source_map = buffer.generate_map("input.ts")

    assert source_map.version == 3
    assert source_map.sources == ["input.ts"]
    assert source_map.sources_content == ["ab\ncd"]
    assert source_map.mappings == ";AAAA;AACA"


def test_mappings_at_word_boundaries() -> None:
    buffer = EditBuffer("let ab")
    buffer.append_left(6, ".value")

    source_map = buffer.generate_map("input.ts")

    # `let`, the space and `ab`; the inserted text is not mapped.
    assert source_map.mappings == "AAAA,GAAG,CAAC"


def test_overwritten_text_maps_to_original_start() -> None:
    buffer = EditBuffer("a new Map")
    buffer.overwrite(2, 9, "$proxyMap")

    source_map = buffer.generate_map("input.ts", include_content=False)

    assert source_map.sources_content == [None]
    assert source_map.mappings == "AAAA,CAAC,CAAC"


def test_source_map_serializes_with_aliases() -> None:
    source_map = EditBuffer("a").generate_map("a.ts")

    data = source_map.model_dump(by_alias=True)

    assert data["sourcesContent"] == ["a"]
    assert data["version"] == 3
