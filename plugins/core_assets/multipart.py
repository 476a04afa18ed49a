# plugins/core_assets/multipart.py
"""
Decoder for raw `multipart/form-data` bodies.

The body is scanned for the delimiter `--<boundary>`. Every span between two
delimiters is one part: a header block, a blank line, then the payload. Only
the `Content-Disposition` parameters are interpreted (`name`, `filename`);
everything else in the header block is ignored.

Parts are parsed best-effort. A span without a blank line after its headers,
or with a Content-Disposition that does not tokenise, is dropped and logged
instead of failing the whole request.
"""
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional

from .contracts import AssetValidationError

logger = logging.getLogger(__name__)

CRLF = b"\r\n"
HEADER_TERMINATOR = b"\r\n\r\n"
END_MARKER = b"--"


class MalformedPartError(ValueError):
    """A part whose header block cannot be parsed."""


@dataclass(frozen=True)
class MultipartPart:
    name: str
    filename: Optional[str]
    data: bytes

    @property
    def is_file(self) -> bool:
        return self.filename is not None

    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace").strip()


# --- Content-Disposition 参数的状态机 ---

class _State(Enum):
    KEY = auto()
    VALUE_START = auto()
    TOKEN = auto()
    QUOTED = auto()
    ESCAPE = auto()
    AFTER_QUOTED = auto()


def parse_header_params(value: str) -> Dict[str, str]:
    """
    Tokenise `form-data; name="file"; filename="a b.png"` into
    `{"name": "file", "filename": "a b.png"}`.

    Bare tokens without `=` (the disposition type) are skipped. Keys are
    lower-cased. Raises MalformedPartError on an unterminated quoted string.
    """
    params: Dict[str, str] = {}
    state = _State.KEY
    key: List[str] = []
    val: List[str] = []

    def commit() -> None:
        k = "".join(key).strip().lower()
        if k:
            params.setdefault(k, "".join(val) if state is not _State.TOKEN else "".join(val).strip())
        key.clear()
        val.clear()

    for ch in value:
        if state is _State.KEY:
            if ch == "=":
                state = _State.VALUE_START
            elif ch == ";":
                key.clear()
            else:
                key.append(ch)
        elif state is _State.VALUE_START:
            if ch == '"':
                state = _State.QUOTED
            elif ch in " \t":
                continue
            elif ch == ";":
                commit()
                state = _State.KEY
            else:
                val.append(ch)
                state = _State.TOKEN
        elif state is _State.TOKEN:
            if ch == ";":
                commit()
                state = _State.KEY
            else:
                val.append(ch)
        elif state is _State.QUOTED:
            if ch == "\\":
                state = _State.ESCAPE
            elif ch == '"':
                state = _State.AFTER_QUOTED
            else:
                val.append(ch)
        elif state is _State.ESCAPE:
            val.append(ch)
            state = _State.QUOTED
        elif state is _State.AFTER_QUOTED:
            if ch == ";":
                commit()
                state = _State.KEY
            # 引号后到分号之间的字符一律忽略

    if state in (_State.QUOTED, _State.ESCAPE):
        raise MalformedPartError(f"Unterminated quoted string in header: {value!r}")
    if state in (_State.TOKEN, _State.AFTER_QUOTED, _State.VALUE_START):
        commit()
    return params


def parse_part_headers(block: bytes) -> Dict[str, str]:
    """Header lines (`Name: value`) -> dict with lower-cased names. Lines without a colon are ignored."""
    headers: Dict[str, str] = {}
    for raw_line in block.split(CRLF):
        line = raw_line.decode("utf-8", errors="replace")
        if not line.strip():
            continue
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers.setdefault(name.strip().lower(), value.strip())
    return headers


def extract_boundary(content_type: Optional[str]) -> str:
    """Boundary token from a Content-Type header value; raises AssetValidationError if absent."""
    if content_type:
        try:
            params = parse_header_params(content_type)
        except MalformedPartError as e:
            raise AssetValidationError(f"Invalid Content-Type: {e}") from e
        boundary = params.get("boundary", "").strip()
        if boundary:
            return boundary
    raise AssetValidationError("No boundary")


class MultipartDecoder:
    """Splits a raw body into MultipartPart objects. Holds no state between calls."""

    def __init__(self, boundary: str):
        if not boundary:
            raise AssetValidationError("No boundary")
        try:
            self.delimiter = b"--" + boundary.encode("ascii")
        except UnicodeEncodeError:
            raise AssetValidationError(f"Invalid boundary: {boundary!r}")
        self.boundary = boundary

    def decode(self, body: bytes) -> List[MultipartPart]:
        parts: List[MultipartPart] = []
        dropped = 0
        for span in self._spans(body):
            try:
                part = self._parse_span(span)
            except MalformedPartError as e:
                logger.warning(f"Dropping malformed multipart part: {e}")
                dropped += 1
                continue
            parts.append(part)
        if dropped:
            logger.warning(f"Dropped {dropped} malformed multipart part(s); kept {len(parts)}.")
        return parts

    def _spans(self, body: bytes) -> Iterator[bytes]:
        """Yield the bytes between successive delimiters, skipping the preamble."""
        sep_len = len(self.delimiter)
        start: Optional[int] = None
        pos = 0
        while True:
            idx = body.find(self.delimiter, pos)
            if idx == -1:
                return
            if start is not None:
                yield body[start:idx]
            after = idx + sep_len
            if body[after:after + 2] == END_MARKER:
                return
            # 跳过分隔符所在行的换行
            start = after + 2
            pos = start

    @staticmethod
    def _parse_span(span: bytes) -> MultipartPart:
        header_end = span.find(HEADER_TERMINATOR)
        if header_end == -1:
            raise MalformedPartError("no blank line after the part headers")

        headers = parse_part_headers(span[:header_end])
        disposition = parse_header_params(headers.get("content-disposition", ""))

        data = span[header_end + len(HEADER_TERMINATOR):]
        if data.endswith(CRLF):
            data = data[:-2]
        elif data.endswith(b"\n"):
            data = data[:-1]

        return MultipartPart(
            name=disposition.get("name", ""),
            # 空的 filename="" 按普通字段处理（浏览器对未选择文件的 input 就是这么发的）
            filename=disposition.get("filename") or None,
            data=data,
        )


class MultipartForm:
    """Lookup helpers over decoded parts. The first part with a given name wins."""

    def __init__(self, parts: List[MultipartPart]):
        self.parts = parts

    @classmethod
    def from_body(cls, body: bytes, content_type: Optional[str]) -> "MultipartForm":
        return cls(MultipartDecoder(extract_boundary(content_type)).decode(body))

    def field(self, name: str) -> Optional[MultipartPart]:
        return next((p for p in self.parts if p.name == name), None)

    def file(self, name: str) -> Optional[MultipartPart]:
        return next((p for p in self.parts if p.name == name and p.is_file), None)

    def text(self, name: str) -> Optional[str]:
        part = self.field(name)
        return part.text() if part is not None else None

    def __len__(self) -> int:
        return len(self.parts)
