"""
multipart/form-data decoder for fully buffered request bodies.

The body is scanned left to right: everything before the first delimiter is
preamble, each delimiter opens a part, and a part runs until the next
delimiter. Whatever follows the last delimiter (the closing `--` and any
epilogue) is discarded. Parts that have no header/body separator or no
Content-Disposition header are skipped without failing the request.
"""
import re
from enum import Enum, auto
from typing import Dict, Optional, Tuple

from models.edit import ImagePart, MultipartForm

CRLF = b"\r\n"
HEADER_SEPARATOR = b"\r\n\r\n"
DEFAULT_PART_TYPE = "application/octet-stream"

_BOUNDARY_RE = re.compile(r"boundary=([^;]+)", re.IGNORECASE)
_DISPOSITION_PARAM_RE = re.compile(r';\s*([A-Za-z0-9_*-]+)\s*=\s*(?:"([^"]*)"|([^;\s]*))')


class MalformedRequest(ValueError):
    """Raised when a body cannot be decoded as multipart/form-data"""
    pass


class _State(Enum):
    PREAMBLE = auto()
    PART = auto()
    BODY = auto()
    DONE = auto()


def parse_boundary(content_type: Optional[str]) -> str:
    """Extract the boundary token from a Content-Type header value."""
    match = _BOUNDARY_RE.search(content_type or "")
    if not match:
        raise MalformedRequest("boundary not found")
    boundary = match.group(1).strip().strip('"')
    if not boundary:
        raise MalformedRequest("boundary not found")
    return boundary


def parse_part_headers(block: bytes) -> Dict[str, str]:
    """Parse a part's header block into a lower-cased name -> value map."""
    headers: Dict[str, str] = {}
    for line in block.decode("utf-8", errors="replace").split("\r\n"):
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers[name.strip().lower()] = value.strip()
    return headers


def parse_content_disposition(value: str) -> Optional[Tuple[str, Optional[str]]]:
    """Return (name, filename) for a form-data disposition, or None.

    `filename` is None when the parameter is absent, and may be an empty
    string when the browser sends `filename=""` for an empty file input.
    """
    disposition, _, _ = value.partition(";")
    if disposition.strip().lower() != "form-data":
        return None
    params = {}
    for match in _DISPOSITION_PARAM_RE.finditer(value):
        quoted, bare = match.group(2), match.group(3)
        params[match.group(1).lower()] = quoted if quoted is not None else bare
    name = params.get("name")
    if not name:
        return None
    return name, params.get("filename")


def decode(content_type: Optional[str], body: bytes) -> MultipartForm:
    """Decode a multipart/form-data body into text fields and file parts.

    Raises:
        MalformedRequest: if the Content-Type header carries no boundary.
    """
    delimiter = b"--" + parse_boundary(content_type).encode("latin-1")
    form = MultipartForm()

    state = _State.PREAMBLE
    pos = 0
    headers: Dict[str, str] = {}
    body_start = body_end = 0

    while state is not _State.DONE:
        if state is _State.PREAMBLE:
            index = body.find(delimiter, pos)
            if index == -1:
                state = _State.DONE
                continue
            pos = index + len(delimiter)
            state = _State.PART

        elif state is _State.PART:
            # Closing delimiter, everything after it is epilogue
            if body.startswith(b"--", pos):
                state = _State.DONE
                continue
            next_index = body.find(delimiter, pos)
            if next_index == -1:
                state = _State.DONE
                continue

            start = pos + len(CRLF) if body.startswith(CRLF, pos) else pos
            separator = body.find(HEADER_SEPARATOR, start, next_index)
            if separator == -1:
                pos = next_index + len(delimiter)
                continue

            headers = parse_part_headers(body[start:separator])
            body_start = separator + len(HEADER_SEPARATOR)
            body_end = next_index
            state = _State.BODY

        elif state is _State.BODY:
            content = body[body_start:body_end]
            if content.endswith(CRLF):
                content = content[:-len(CRLF)]
            _add_part(form, headers, content)
            pos = body_end + len(delimiter)
            state = _State.PART

    return form


def _add_part(form: MultipartForm, headers: Dict[str, str], content: bytes) -> None:
    disposition = parse_content_disposition(headers.get("content-disposition", ""))
    if disposition is None:
        return
    name, filename = disposition
    # An empty file input arrives as filename="" and is not an upload
    if not filename:
        form.fields[name] = content.decode("utf-8", errors="replace")
        return
    form.files.append(ImagePart(
        field_name=name,
        filename=filename,
        mime_type=headers.get("content-type") or DEFAULT_PART_TYPE,
        data=content,
    ))
