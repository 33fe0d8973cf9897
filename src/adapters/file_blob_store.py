"""Local filesystem blob store adapter."""

from __future__ import annotations

import os
from typing import Optional


class FileBlobStore:
    """Writes attachment bytes under one directory.

    The locator is a public URL when ``public_base_url`` is configured
    (for example a static file server in front of the directory), otherwise
    the absolute file path.
    """

    def __init__(self, directory: str, public_base_url: Optional[str] = None) -> None:
        self._directory = os.path.abspath(directory)
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    @property
    def directory(self) -> str:
        return self._directory

    def put(self, name: str, data: bytes, mime_type: str) -> str:
        if os.path.basename(name) != name:
            raise ValueError(f"Blob names must not contain path separators: {name}")
        os.makedirs(self._directory, exist_ok=True)
        path = os.path.join(self._directory, name)
        # "xb" refuses to overwrite, so a name collision surfaces as an error.
        with open(path, "xb") as handle:
            handle.write(data)
        if self._public_base_url:
            return f"{self._public_base_url}/{name}"
        return path
