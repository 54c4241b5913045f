"""
Write-once file storage for serialized evidence.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional, Union

from lala.exceptions import EvidenceStorageError


logger = logging.getLogger(__name__)

_TABLENAME_PATTERN = re.compile(r'(?<=\d-)([a-zA-Z_]+)(?=\.)')


def build_filename(version_id: int, evidence_name: str, evidence_id: int, file_type: str,
                   table_name: Optional[str] = None) -> str:
    """
    modelversion<v>-evidence<name><id>[-<table>].<type>

    Examples:
        modelversion3-evidencedataset_anonymized12.csv
        modelversion3-evidencerelated_data_anonymized15-user_enrolments.csv
    """
    filename = f"modelversion{version_id}-evidence{evidence_name}{evidence_id}"
    if table_name:
        filename += f"-{table_name}"
    return f"{filename}.{file_type}"


def get_tablename_from_location(location: str) -> Optional[str]:
    """Table name encoded in a related-data file location, if any."""
    match = _TABLENAME_PATTERN.search(os.path.basename(location))
    if match:
        return match.group(1)
    return None


class FileEvidenceStore:
    """Evidence blobs as files below one directory."""

    def __init__(self, root_dir: Union[str, Path]):
        self.root_dir = Path(root_dir)

    def put(self, version_id: int, evidence_name: str, evidence_id: int, payload: Union[bytes, str],
            file_type: str, table_name: Optional[str] = None) -> str:
        """
        Write a blob once and return its location.

        Raises:
            EvidenceStorageError: If the location is already taken or not writable
        """
        if isinstance(payload, str):
            payload = payload.encode('utf-8')

        self.root_dir.mkdir(parents=True, exist_ok=True)
        path = self.root_dir / build_filename(version_id, evidence_name, evidence_id, file_type, table_name)

        try:
            with open(path, 'xb') as f:
                f.write(payload)
        except FileExistsError:
            raise EvidenceStorageError(f"Evidence already stored at {path}") from None
        except OSError as e:
            raise EvidenceStorageError(f"Could not store evidence at {path}: {e}") from e

        logger.debug(f"Stored {len(payload)} bytes at {path}")
        return str(path)

    def next_evidence_id(self, version_id: int, evidence_name: str) -> int:
        """One more than the highest evidence id already stored for a version and kind."""
        pattern = re.compile(
            rf'^modelversion{version_id}-evidence{re.escape(evidence_name)}(\d+)(?:-[a-zA-Z_]+)?\.\w+$'
        )
        highest = 0
        if self.root_dir.is_dir():
            for path in self.root_dir.iterdir():
                match = pattern.match(path.name)
                if match:
                    highest = max(highest, int(match.group(1)))
        return highest + 1

    def get(self, location: str) -> bytes:
        try:
            with open(location, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            raise EvidenceStorageError(f"No evidence stored at {location}") from None

    def exists(self, location: str) -> bool:
        return os.path.isfile(location)

    def delete(self, location: str) -> None:
        try:
            os.unlink(location)
            logger.debug(f"Deleted {location}")
        except FileNotFoundError:
            pass
