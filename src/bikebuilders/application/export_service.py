"""
Local Export Service.

Writes the dataset to a timestamped JSON file that can be shared, and
imports such a file back. The host supplies the share and file-pick
mechanisms; both may be dismissed by the user.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from bikebuilders.application.snapshot_codec import RestoreReport, SnapshotCodec
from bikebuilders.domain.errors import FormatError, UserCancelled

logger = logging.getLogger(__name__)

EXPORT_PREFIX = "bikebuilders_backup_"


class ShareTarget(Protocol):
    """Hands an exported file to the host (share sheet, mail, copy...)."""

    def share(self, path: Path) -> None:
        """Raises UserCancelled if the user dismisses the share."""
        ...


class FilePicker(Protocol):
    """Lets the user choose a file to import."""

    def pick(self) -> Optional[Path]:
        """Return the chosen path, or None / raise UserCancelled on dismissal."""
        ...


class LocalExportService:
    """
    Export to and import from local snapshot files.

    Usage:
        service = LocalExportService(codec, Path("exports"))
        path = service.export_snapshot()
        imported = service.import_snapshot(picker)
    """

    def __init__(self, codec: SnapshotCodec, export_dir: Path | str):
        self.codec = codec
        self.export_dir = Path(export_dir)
        self.last_restore: RestoreReport | None = None

    def _export_path(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        path = self.export_dir / f"{EXPORT_PREFIX}{stamp}.json"
        suffix = 1
        while path.exists():
            path = self.export_dir / f"{EXPORT_PREFIX}{stamp}_{suffix}.json"
            suffix += 1
        return path

    def export_snapshot(self, sharer: ShareTarget | None = None) -> Path:
        """
        Capture the dataset into a new export file.

        Args:
            sharer: Optional share mechanism to hand the file to

        Returns:
            Path of the written file (kept even if sharing is dismissed)
        """
        snapshot = self.codec.capture()
        self.export_dir.mkdir(parents=True, exist_ok=True)
        path = self._export_path()
        path.write_text(self.codec.dumps(snapshot), encoding="utf-8")
        logger.info("Exported %s to %s", snapshot.counts(), path)

        if sharer is not None:
            try:
                sharer.share(path)
            except UserCancelled:
                logger.info("Share dismissed; export kept at %s", path)
        return path

    def import_snapshot(self, picker: FilePicker) -> bool:
        """
        Replace the dataset with the content of a user-chosen file.

        Returns:
            False if the user cancelled the pick, True after a restore

        Raises:
            FormatError: If the file cannot be read or does not parse
        """
        try:
            path = picker.pick()
        except UserCancelled:
            path = None
        if path is None:
            logger.info("Import cancelled")
            return False

        return self.import_file(path)

    def import_file(self, path: Path | str) -> bool:
        """Restore from a known file path. Raises FormatError on bad content."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FormatError(f"Cannot read {path}: {e}") from e

        snapshot = self.codec.loads(text)
        self.last_restore = self.codec.restore(snapshot)
        logger.info("Imported %s from %s", snapshot.counts(), path)
        return True
