from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from PIL import Image


@dataclass(slots=True)
class FetchedImage:
    url: str
    data: bytes
    image: Image.Image

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class DiskEntry:
    path: str
    size_bytes: int
    modified_at: float


@dataclass(slots=True)
class FetchSummary:
    generated_at: datetime
    images: dict[str, Optional[dict[str, Any]]]
    stats: dict[str, dict[str, int]]
    failed: List[str] = field(default_factory=list)
