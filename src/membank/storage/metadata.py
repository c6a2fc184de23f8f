"""Per-project ``.metadata.json`` records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

METADATA_FILENAME = ".metadata.json"


@dataclass
class ProjectMetadata:
    friendly_name: str
    directory_name: str
    created_at: str

    @classmethod
    def new(cls, friendly_name: str, directory_name: str) -> ProjectMetadata:
        created = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        return cls(friendly_name, directory_name, created.replace("+00:00", "Z"))

    def to_dict(self) -> dict[str, str]:
        return {
            "friendlyName": self.friendly_name,
            "directoryName": self.directory_name,
            "createdAt": self.created_at,
        }


class MetadataStore:
    """Best-effort metadata access; unreadable records count as missing."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, directory_name: str) -> Path:
        return self.root / directory_name / METADATA_FILENAME

    def read_metadata(self, directory_name: str) -> ProjectMetadata | None:
        path = self._path(directory_name)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable metadata for %s: %s", directory_name, e)
            return None

        if not isinstance(data, dict):
            return None
        fields = (data.get("friendlyName"), data.get("directoryName"), data.get("createdAt"))
        if not all(isinstance(v, str) for v in fields):
            logger.debug("Ignoring malformed metadata for %s", directory_name)
            return None
        return ProjectMetadata(*fields)

    def write_metadata(self, directory_name: str, metadata: ProjectMetadata) -> None:
        self._path(directory_name).write_text(
            json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
