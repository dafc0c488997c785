from pathlib import Path
import tarfile

import pytest

from rpm_patch_diff.helpers.archive import ArchiveException, archive, archive_path
from conftest import START, TODAY


def names(path: Path):
    with tarfile.open(path) as tar:
        return tar.getnames()


def test_archive_path(tmp_path):
    assert archive_path(tmp_path, START, TODAY) == (
        tmp_path / f"disconnected-rpm-update-from-{START}-to-{TODAY}.tar"
    )


def test_archive_contains_new_files_and_repodata(store):
    base = store["repo_base_dir"]
    output = archive(
        base,
        ["repoB", "repoA"],
        {"repoA": (str(base / "repoA" / "pkg1.rpm"),), "repoB": ()},
        archive_path(store["output_dir"], START, TODAY),
    )
    assert output.is_file()
    assert names(output) == [
        "repoA/pkg1.rpm",
        "repoA/repodata",
        "repoA/repodata/repomd.xml",
        "repoB/repodata",
        "repoB/repodata/repomd.xml",
    ]
    with tarfile.open(output) as tar:
        assert tar.extractfile("repoA/pkg1.rpm").read() == b"pkg1"


def test_archive_is_reproducible(store):
    base = store["repo_base_dir"]
    (base / "repoA" / "pkg2.rpm").write_text("pkg2")
    new_files = (str(base / "repoA" / "pkg2.rpm"), str(base / "repoA" / "pkg1.rpm"))
    first = archive(base, ["repoA"], {"repoA": new_files}, store["output_dir"] / "a.tar")
    second = archive(
        base, ["repoA"], {"repoA": tuple(reversed(new_files))}, store["output_dir"] / "b.tar"
    )
    assert names(first) == names(second)


def test_file_outside_repo_base_dir(store, tmp_path):
    outside = tmp_path / "elsewhere.rpm"
    outside.write_text("x")
    output = store["output_dir"] / "out.tar"
    with pytest.raises(ArchiveException):
        archive(store["repo_base_dir"], ["repoA"], {"repoA": (str(outside),)}, output)
    assert list(store["output_dir"].iterdir()) == []


def test_missing_repodata_leaves_nothing_behind(store):
    base = store["repo_base_dir"]
    (base / "repoB" / "repodata" / "repomd.xml").unlink()
    (base / "repoB" / "repodata").rmdir()
    output = store["output_dir"] / "out.tar"
    with pytest.raises(ArchiveException):
        archive(base, ["repoA", "repoB"], {"repoA": (str(base / "repoA" / "pkg1.rpm"),)}, output)
    assert list(store["output_dir"].iterdir()) == []


def test_missing_new_file(store):
    base = store["repo_base_dir"]
    with pytest.raises(ArchiveException):
        archive(
            base,
            ["repoA"],
            {"repoA": (str(base / "repoA" / "gone.rpm"),)},
            store["output_dir"] / "out.tar",
        )
    assert list(store["output_dir"].iterdir()) == []


def test_new_repodata_files_are_added_once(store):
    base = store["repo_base_dir"]
    (base / "repoA" / "repodata" / "primary.xml.gz").write_text("primary")
    output = archive(
        base,
        ["repoA"],
        {
            "repoA": (
                str(base / "repoA" / "pkg1.rpm"),
                str(base / "repoA" / "repodata" / "primary.xml.gz"),
            )
        },
        store["output_dir"] / "out.tar",
    )
    assert names(output) == [
        "repoA/pkg1.rpm",
        "repoA/repodata",
        "repoA/repodata/primary.xml.gz",
        "repoA/repodata/repomd.xml",
    ]
