from __future__ import annotations

import tarfile
from datetime import datetime

from hotswap.adapters.archive_tools import BuiltinArchiveTools
from hotswap.domain.run_log import UpgradeRun
from hotswap.tests.doubles import FailingBackupTools
from hotswap.usecases.backup_target import BackupTarget, backup_archive_name

MOMENT = datetime(2026, 3, 4, 5, 6, 7)


def test_archive_name_uses_timestamp():
    assert backup_archive_name(MOMENT) == "backup_20260304_050607.tar.gz"


def test_backup_archives_target_contents(tmp_path):
    target = tmp_path / "app"
    (target / "bin").mkdir(parents=True)
    (target / "bin" / "app").write_bytes(b"v1")
    backup_dir = tmp_path / "app-bk"
    backup_dir.mkdir()
    run = UpgradeRun()

    archive = BackupTarget(archive_tools=BuiltinArchiveTools(), clock=lambda: MOMENT)(
        target_dir=target, backup_dir=backup_dir, run=run
    )

    assert archive == backup_dir / "backup_20260304_050607.tar.gz"
    with tarfile.open(archive, "r:gz") as tar:
        assert tar.extractfile("bin/app").read() == b"v1"
    assert run.lines == [f"   ✓ Backup saved to: {archive}"]


def test_missing_target_only_warns(tmp_path):
    run = UpgradeRun()
    backup_dir = tmp_path / "bk"
    backup_dir.mkdir()

    archive = BackupTarget(archive_tools=BuiltinArchiveTools(), clock=lambda: MOMENT)(
        target_dir=tmp_path / "missing", backup_dir=backup_dir, run=run
    )

    assert archive is None
    assert run.warnings == 1
    assert run.lines[0].startswith("   WARNING: Backup failed (there may be no existing program)")


def test_archive_tool_failure_only_warns(tmp_path):
    target = tmp_path / "app"
    target.mkdir()
    run = UpgradeRun()

    archive = BackupTarget(archive_tools=FailingBackupTools(BuiltinArchiveTools()))(
        target_dir=target, backup_dir=tmp_path, run=run
    )

    assert archive is None
    assert "disk full" in run.text()


def test_backups_within_the_same_second_get_numbered_names(tmp_path):
    target = tmp_path / "app"
    target.mkdir()
    (target / "tool").write_bytes(b"v1")
    backup_dir = tmp_path / "bk"
    backup_dir.mkdir()
    backup = BackupTarget(archive_tools=BuiltinArchiveTools(), clock=lambda: MOMENT)

    first_run, second_run = UpgradeRun(), UpgradeRun()
    first = backup(target_dir=target, backup_dir=backup_dir, run=first_run)
    second = backup(target_dir=target, backup_dir=backup_dir, run=second_run)

    assert first.name == "backup_20260304_050607.tar.gz"
    assert second.name == "backup_20260304_050607_1.tar.gz"
    assert sorted(p.name for p in backup_dir.iterdir()) == [first.name, second.name]
    assert second_run.lines == [
        f"   ✓ Backup saved to: {second}",
        "   backup_20260304_050607.tar.gz already existed, numbered name used",
    ]
    assert len(first_run.lines) == 1
