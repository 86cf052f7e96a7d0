from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class BatchItem:
    """One submitted document.

    Temporary items (e.g. spooled uploads) are deleted once processed; files
    the caller owns are left alone.
    """

    filename: str
    path: Path
    size_bytes: int
    temporary: bool = False

    @classmethod
    def from_path(cls, path: Path, *, filename: str | None = None, temporary: bool = False) -> "BatchItem":
        size = path.stat().st_size if path.exists() else 0
        return cls(
            filename=filename or path.name,
            path=path,
            size_bytes=size,
            temporary=temporary,
        )


@dataclass(frozen=True)
class PdfValidation:
    valid: bool
    filename: str
    reason: str | None = None
    file_size_bytes: int | None = None

    def to_dict(self) -> dict[str, object]:
        if not self.valid:
            return {"valid": False, "reason": self.reason}
        return {"valid": True, "file_size_bytes": self.file_size_bytes, "filename": self.filename}
