from typing import Dict, List, Optional, Tuple

from statekit.models import SourceMap
from statekit.services.source_map import MappingsBuilder


class EditConflictError(RuntimeError):
    pass


class EditBuffer:
    """
    Records text edits against an immutable original string and renders them
    once, last.

    Every index between two characters has two insertion slots. The left
    slot belongs to the text ending at the index and the right slot to the
    text starting there; at render time the left slot comes first. So
    `append_left(i, ...)` sticks to whatever precedes `i` and survives an
    overwrite that starts at `i`, while `prepend_right(i, ...)` sticks to
    what follows.

    Overwriting or removing a range discards the inserts already recorded
    inside it (boundaries included, from the range's point of view). Later
    inserts strictly inside a replaced range, and overlapping replacements,
    raise `EditConflictError`.
    """

    def __init__(self, original: str):
        self.original = original
        self.intro = ""
        self._left: Dict[int, str] = {}
        self._right: Dict[int, str] = {}
        # start -> (end, content), non-overlapping
        self._replacements: Dict[int, Tuple[int, str]] = {}

    # --- Inserts ---

    def append_left(self, index: int, content: str) -> "EditBuffer":
        self._check_insert(index)
        self._left[index] = self._left.get(index, "") + content
        return self

    def prepend_left(self, index: int, content: str) -> "EditBuffer":
        self._check_insert(index)
        self._left[index] = content + self._left.get(index, "")
        return self

    def append_right(self, index: int, content: str) -> "EditBuffer":
        self._check_insert(index)
        self._right[index] = self._right.get(index, "") + content
        return self

    def prepend_right(self, index: int, content: str) -> "EditBuffer":
        self._check_insert(index)
        self._right[index] = content + self._right.get(index, "")
        return self

    def prepend(self, content: str) -> "EditBuffer":
        self.intro = content + self.intro
        return self

    # --- Replacements ---

    def overwrite(self, start: int, end: int, content: str) -> "EditBuffer":
        if start >= end:
            raise ValueError(f"Cannot overwrite an empty range ({start}, {end})")
        self._replace(start, end, content)
        return self

    def remove(self, start: int, end: int) -> "EditBuffer":
        if start < end:
            self._replace(start, end, "")
        return self

    def _replace(self, start: int, end: int, content: str) -> None:
        if start < 0 or end > len(self.original):
            raise ValueError(f"Range ({start}, {end}) is out of bounds")
        for other_start, (other_end, _) in self._replacements.items():
            if start < other_end and other_start < end:
                raise EditConflictError(
                    f"Cannot replace ({start}, {end}): it overlaps ({other_start}, {other_end})"
                )
        for index in range(start, end):
            self._right.pop(index, None)
        for index in range(start + 1, end + 1):
            self._left.pop(index, None)
        self._replacements[start] = (end, content)

    def _check_insert(self, index: int) -> None:
        if index < 0 or index > len(self.original):
            raise ValueError(f"Index {index} is out of bounds")
        for start, (end, _) in self._replacements.items():
            if start < index < end:
                raise EditConflictError(
                    f"Cannot insert at {index}: it is inside the replaced range ({start}, {end})"
                )

    # --- Output ---

    def has_changed(self) -> bool:
        return bool(
            self.intro
            or self._replacements
            or any(self._left.values())
            or any(self._right.values())
        )

    def render(self) -> str:
        return self._render(None)

    def generate_map(self, file_path: str, include_content: bool = True) -> SourceMap:
        mappings = MappingsBuilder(self.original)
        self._render(mappings)
        return mappings.to_source_map(file_path, self.original if include_content else None)

    def _render(self, mappings: Optional[MappingsBuilder]) -> str:
        parts: List[str] = [self.intro]
        if mappings is not None:
            mappings.advance(self.intro)

        # Indexes where copied original text has to be split.
        cuts = set(self._left) | set(self._right)
        for start, (end, _) in self._replacements.items():
            cuts.add(start)
            cuts.add(end)
        cuts.add(len(self.original))

        index = 0
        for cut in sorted(cuts):
            if cut < index:
                continue
            if cut > index:
                parts.append(self.original[index:cut])
                if mappings is not None:
                    mappings.add_unedited(index, cut)
                index = cut
            for inserted in (self._left.get(index, ""), self._right.get(index, "")):
                parts.append(inserted)
                if mappings is not None:
                    mappings.advance(inserted)
            replacement = self._replacements.get(index)
            if replacement is not None:
                end, content = replacement
                parts.append(content)
                if mappings is not None:
                    mappings.add_edit(content, index)
                index = end
                # The replacement's end is handled by the next cut.
        return "".join(parts)
