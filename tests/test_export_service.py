"""
Tests for local export and import of snapshot files.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

from bikebuilders.application.export_service import EXPORT_PREFIX, LocalExportService
from bikebuilders.domain.errors import FormatError, UserCancelled


class TestLocalExportService:

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir)

    def test_export_writes_timestamped_file(self, populated_repo, codec):
        service = LocalExportService(codec, self.temp_dir / "exports")

        path = service.export_snapshot()

        assert path.parent == self.temp_dir / "exports"
        assert path.name.startswith(EXPORT_PREFIX)
        assert path.suffix == ".json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert len(data["customers"]) == 2

    def test_exports_never_overwrite_each_other(self, codec):
        service = LocalExportService(codec, self.temp_dir)
        assert service.export_snapshot() != service.export_snapshot()

    def test_export_hands_file_to_sharer(self, codec):
        sharer = Mock()
        path = LocalExportService(codec, self.temp_dir).export_snapshot(sharer)
        sharer.share.assert_called_once_with(path)

    def test_dismissed_share_keeps_file(self, codec):
        sharer = Mock()
        sharer.share.side_effect = UserCancelled("dismissed")

        path = LocalExportService(codec, self.temp_dir).export_snapshot(sharer)

        assert path.exists()

    def test_import_cancelled_returns_false(self, populated_repo, codec):
        picker = Mock()
        picker.pick.return_value = None

        assert LocalExportService(codec, self.temp_dir).import_snapshot(picker) is False
        assert len(populated_repo.list_vehicles()) == 3

    def test_import_dismissed_picker_returns_false(self, codec):
        picker = Mock()
        picker.pick.side_effect = UserCancelled("back pressed")
        assert LocalExportService(codec, self.temp_dir).import_snapshot(picker) is False

    def test_import_rejects_bad_content(self, populated_repo, codec):
        bad = self.temp_dir / "notes.json"
        bad.write_text("these are my notes", encoding="utf-8")
        picker = Mock()
        picker.pick.return_value = bad

        with pytest.raises(FormatError):
            LocalExportService(codec, self.temp_dir).import_snapshot(picker)
        assert len(populated_repo.list_vehicles()) == 3

    def test_import_missing_file_is_format_error(self, codec):
        with pytest.raises(FormatError):
            LocalExportService(codec, self.temp_dir).import_file(self.temp_dir / "gone.json")

    def test_export_then_import_restores(self, populated_repo, codec):
        service = LocalExportService(codec, self.temp_dir)
        path = service.export_snapshot()
        populated_repo.clear_dataset()
        picker = Mock()
        picker.pick.return_value = path

        assert service.import_snapshot(picker) is True
        assert populated_repo.find_vehicle("MH12CD0001").owner_name == "Ravi"
        assert service.last_restore.vehicles == 3
