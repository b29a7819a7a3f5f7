"""
Source map v3 encoding.

Segments are recorded per generated line as
`(generated_column, source_index, original_line, original_column)` and
encoded as base64 VLQ, each field relative to the previous segment
(the generated column resets on every line).
"""
import bisect
import re
from typing import List, Optional, Tuple

from statekit.models import SourceMap

BASE64_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

VLQ_SHIFT = 5
VLQ_CONTINUATION = 1 << VLQ_SHIFT
VLQ_MASK = VLQ_CONTINUATION - 1

WORD_CHAR = re.compile(r"\w")

Segment = Tuple[int, int, int, int]


def encode_vlq(value: int) -> str:
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & VLQ_MASK
        vlq >>= VLQ_SHIFT
        if vlq:
            digit |= VLQ_CONTINUATION
        encoded += BASE64_CHARS[digit]
        if not vlq:
            return encoded


def encode_mappings(lines: List[List[Segment]]) -> str:
    source_index = 0
    original_line = 0
    original_column = 0
    encoded_lines = []
    for segments in lines:
        generated_column = 0
        encoded_segments = []
        for segment in segments:
            encoded_segments.append(
                encode_vlq(segment[0] - generated_column)
                + encode_vlq(segment[1] - source_index)
                + encode_vlq(segment[2] - original_line)
                + encode_vlq(segment[3] - original_column)
            )
            generated_column, source_index, original_line, original_column = segment
        encoded_lines.append(",".join(encoded_segments))
    return ";".join(encoded_lines)


class Locator:
    """Maps character offsets of a text to 0-based (line, column)."""

    def __init__(self, text: str):
        self.line_starts = [0]
        for index, ch in enumerate(text):
            if ch == "\n":
                self.line_starts.append(index + 1)

    def locate(self, index: int) -> Tuple[int, int]:
        line = bisect.bisect_right(self.line_starts, index) - 1
        return line, index - self.line_starts[line]


class MappingsBuilder:
    """
    Tracks the generated position while output is rendered, recording
    segments for original text that survives into the output.
    """

    def __init__(self, original: str):
        self.original = original
        self.locator = Locator(original)
        self.lines: List[List[Segment]] = [[]]
        self.column = 0

    def advance(self, text: str) -> None:
        if not text:
            return
        parts = text.split("\n")
        for _ in parts[1:]:
            self.lines.append([])
        if len(parts) > 1:
            self.column = len(parts[-1])
        else:
            self.column += len(text)

    def add_segment(self, original_index: int) -> None:
        line, column = self.locator.locate(original_index)
        self.lines[-1].append((self.column, 0, line, column))

    def add_edit(self, content: str, original_index: int) -> None:
        if content:
            self.add_segment(original_index)
        self.advance(content)

    def add_unedited(self, start: int, end: int) -> None:
        """
        Map original text copied verbatim into the output, with one segment
        per non-word character and one at the start of every word.
        """
        in_word = False
        for index in range(start, end):
            ch = self.original[index]
            if ch == "\n":
                self.lines.append([])
                self.column = 0
                in_word = False
                continue
            if WORD_CHAR.match(ch):
                if not in_word:
                    self.add_segment(index)
                in_word = True
            else:
                self.add_segment(index)
                in_word = False
            self.column += 1

    def to_source_map(self, file_path: str, source_content: Optional[str]) -> SourceMap:
        return SourceMap(
            file=file_path,
            sources=[file_path],
            sources_content=[source_content],
            names=[],
            mappings=encode_mappings(self.lines),
        )
