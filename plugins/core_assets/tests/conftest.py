# plugins/core_assets/tests/conftest.py

import pytest
from typing import Callable, List, Tuple, Union

from plugins.core_assets.multipart import MultipartForm

BOUNDARY = "----HazeTestBoundary7MA4YWxkTrZu0gW"

# (name, value) 为普通字段；(name, filename, data) 为文件
FormEntry = Union[Tuple[str, str], Tuple[str, str, bytes]]


def encode_multipart(entries: List[FormEntry], boundary: str = BOUNDARY) -> Tuple[bytes, str]:
    """按浏览器的格式手工拼出 multipart/form-data 请求体。"""
    chunks: List[bytes] = []
    for entry in entries:
        chunks.append(f"--{boundary}\r\n".encode())
        if len(entry) == 2:
            name, value = entry
            chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
            chunks.append(value.encode("utf-8"))
        else:
            name, filename, data = entry
            chunks.append(
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f'Content-Type: application/octet-stream\r\n\r\n'.encode()
            )
            chunks.append(data)
        chunks.append(b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks), f"multipart/form-data; boundary={boundary}"


@pytest.fixture
def make_form() -> Callable[..., MultipartForm]:
    def _make(*entries: FormEntry) -> MultipartForm:
        body, content_type = encode_multipart(list(entries))
        return MultipartForm.from_body(body, content_type)
    return _make
