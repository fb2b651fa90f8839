from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

"""UploadFile: one named file attachment of an upload request.

The core never opens files itself; the caller (HTTP layer, CLI) hands over the
already-read buffer together with the original file name.
"""

__all__ = [
    "UploadFile",
]


@dataclass(frozen=True)
class UploadFile:
    name: str  # original file name, used in every diagnostic
    content: bytes | str

    @property
    def size(self) -> int:
        if isinstance(self.content, bytes):
            return len(self.content)
        return len(self.content.encode("utf-8"))

    @classmethod
    def from_path(cls, path: Path) -> UploadFile:
        return cls(name=path.name, content=path.read_bytes())
