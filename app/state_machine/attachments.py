"""
Attachment Collector - evidence items gathered during one flow instance
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Protocol, Sequence

PHOTO = "photo"
DOCUMENT = "document"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Attachment:
    """Reference to a file held by the messaging gateway"""

    file_id: str
    file_type: str = PHOTO
    date: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, str]:
        return {"file_id": self.file_id, "file_type": self.file_type, "date": self.date}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attachment":
        return cls(
            file_id=str(data["file_id"]),
            file_type=str(data.get("file_type") or PHOTO),
            date=str(data.get("date") or _now_iso()),
        )


class PhotoVariant(Protocol):
    file_id: str
    width: int
    height: int


def select_largest_variant(variants: Sequence[PhotoVariant]) -> PhotoVariant | None:
    """Pick the highest-resolution size of a photo; ties keep the later one"""
    best = None
    for variant in variants:
        if best is None or variant.width * variant.height >= best.width * best.height:
            best = variant
    return best


class AttachmentCollector:
    """Ordered list of attachments appended to as media arrives"""

    def __init__(self, items: Sequence[Attachment] = ()):
        self._items: list[Attachment] = list(items)

    def add(self, attachment: Attachment) -> int:
        """Append an attachment and return the new count"""
        self._items.append(attachment)
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def to_list(self) -> list[dict[str, str]]:
        """Serializable form stored in transactions.proof_files"""
        return [item.to_dict() for item in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Attachment]:
        return iter(self._items)
