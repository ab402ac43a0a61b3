from __future__ import annotations

import pytest

from hotswap.adapters.archive_tools import BuiltinArchiveTools
from hotswap.domain.errors import UpgradeError
from hotswap.domain.run_log import UpgradeRun
from hotswap.tests.doubles import ELF_BYTES, corrupt, write_gz, write_tar_gz, write_zip
from hotswap.usecases.install_artifact import (
    InstallArtifact,
    artifact_kind,
    normalize_artifact_name,
)


def _install(tmp_path, artifact, filename):
    target = tmp_path / "target"
    target.mkdir(exist_ok=True)
    run = UpgradeRun()
    destination = InstallArtifact(archive_tools=BuiltinArchiveTools())(
        artifact_path=artifact,
        filename=filename,
        target_dir=target,
        run=run,
    )
    return target, destination, run


def test_artifact_kind_is_case_insensitive():
    assert artifact_kind("build.tar.gz") == "tar.gz"
    assert artifact_kind("BUILD.TAR.GZ") == "tar.gz"
    assert artifact_kind("tool.gz") == "gz"
    assert artifact_kind("Bundle.ZIP") == "zip"
    assert artifact_kind("app") == "raw"
    assert artifact_kind("app.tgz") == "raw"


def test_normalize_artifact_name_strips_directories():
    assert normalize_artifact_name("../../etc/app") == "app"
    assert normalize_artifact_name("C:\\builds\\app.zip") == "app.zip"
    with pytest.raises(UpgradeError):
        normalize_artifact_name("")
    with pytest.raises(UpgradeError):
        normalize_artifact_name("..")


def test_tar_gz_is_extracted_into_target(tmp_path):
    artifact = write_tar_gz(tmp_path / "upload.bin", {"bin/app": b"binary"})

    target, destination, run = _install(tmp_path, artifact, "Build.Tar.Gz")

    assert destination == target
    assert (target / "bin" / "app").read_bytes() == b"binary"
    assert run.lines == ["   Extracting tar.gz archive...", "   ✓ Program deployed"]


def test_gz_is_decompressed_under_stripped_name(tmp_path):
    artifact = write_gz(tmp_path / "staged", b"tool bytes")

    target, destination, run = _install(tmp_path, artifact, "tool.gz")

    assert destination == target / "tool"
    assert destination.read_bytes() == b"tool bytes"
    assert "   Decompressing gz file..." in run.lines


def test_bare_gz_suffix_is_rejected(tmp_path):
    artifact = write_gz(tmp_path / "staged", b"x")
    with pytest.raises(UpgradeError) as excinfo:
        _install(tmp_path, artifact, ".gz")
    assert excinfo.value.code == "upgrade.invalid_filename"


def test_zip_is_extracted_into_target(tmp_path):
    artifact = write_zip(tmp_path / "staged", {"app/run": b"run", "app/data.txt": b"data"})

    target, _destination, run = _install(tmp_path, artifact, "bundle.zip")

    assert (target / "app" / "run").read_bytes() == b"run"
    assert "   Extracting zip archive..." in run.lines


def test_raw_file_is_copied_verbatim_and_replaces_previous(tmp_path):
    artifact = tmp_path / "staged"
    artifact.write_bytes(ELF_BYTES)
    target = tmp_path / "target"
    target.mkdir()
    (target / "app").write_bytes(b"old build")

    _target, destination, run = _install(tmp_path, artifact, "app")

    assert destination == target / "app"
    assert destination.read_bytes() == ELF_BYTES
    assert "   Copying file..." in run.lines


def _garbage(path):
    path.write_bytes(b"definitely not an archive")
    return path


@pytest.mark.parametrize(
    "filename, builder",
    [
        ("build.tar.gz", lambda p: corrupt(write_tar_gz(p, {"a": b"a" * 4096}))),
        ("bundle.zip", _garbage),
        ("tool.gz", _garbage),
    ],
)
def test_corrupted_archives_fail_install(tmp_path, filename, builder):
    artifact = builder(tmp_path / "staged")

    with pytest.raises(UpgradeError) as excinfo:
        _install(tmp_path, artifact, filename)

    assert excinfo.value.code == "upgrade.install_failed"


def test_missing_staged_file_fails_copy(tmp_path):
    with pytest.raises(UpgradeError) as excinfo:
        _install(tmp_path, tmp_path / "gone", "app")
    assert excinfo.value.message == "Failed to copy file"
