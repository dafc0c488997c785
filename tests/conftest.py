from pathlib import Path
from typing import Dict, List, Optional, Sequence
import tempfile

import pytest

from rpm_patch_diff.helpers.config import Settings

START = "2026-09-01"
TODAY = "2026-10-18"


class FakePrompter:
    """Answers prompts from scripted replies and records what was asked."""

    def __init__(
        self,
        one: Sequence[str] = (),
        many: Sequence[List[str]] = (),
        confirms: Sequence[bool] = (),
    ) -> None:
        self.one = list(one)
        self.many = list(many)
        self.confirms = list(confirms)
        self.asked: List[Sequence[str]] = []

    def pick_one(self, options: Sequence[str], header: str) -> str:
        self.asked.append(list(options))
        return self.one.pop(0)

    def pick_many(
        self, options: Sequence[str], header: str, limit: Optional[int] = None
    ) -> List[str]:
        self.asked.append(list(options))
        return self.many.pop(0)

    def confirm(self, question: str, default: bool = False) -> bool:
        return self.confirms.pop(0)


def write_listing(path: Path, entries: Sequence[str]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{entry}\n" for entry in entries))
    return path


@pytest.fixture
def scratch_root(tmp_path, monkeypatch) -> Path:
    """Redirect temporary directories so leftovers can be detected."""
    root = tmp_path / "scratch"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


@pytest.fixture
def store(tmp_path) -> Dict[str, Path]:
    """Two repositories where only repoA gained a package between START and TODAY."""
    repo_base_dir = tmp_path / "repos"
    metadata_dir = tmp_path / "metadata"

    for repo in ("repoA", "repoB"):
        repodata = repo_base_dir / repo / "repodata"
        repodata.mkdir(parents=True)
        (repodata / "repomd.xml").write_text(f"<repomd>{repo}</repomd>\n")
        (repo_base_dir / repo / "old.rpm").write_text("old")

    (repo_base_dir / "repoA" / "pkg1.rpm").write_text("pkg1")

    old_a = [str(repo_base_dir / "repoA" / "old.rpm")]
    old_b = [str(repo_base_dir / "repoB" / "old.rpm")]
    write_listing(metadata_dir / START / "repoA.txt", old_a)
    write_listing(metadata_dir / START / "repoB.txt", old_b)
    write_listing(
        metadata_dir / TODAY / "repoA.txt",
        old_a + [str(repo_base_dir / "repoA" / "pkg1.rpm")],
    )
    write_listing(metadata_dir / TODAY / "repoB.txt", old_b)

    return {
        "repo_base_dir": repo_base_dir,
        "metadata_dir": metadata_dir,
        "output_dir": tmp_path / "out",
    }


@pytest.fixture
def settings(store) -> Settings:
    return Settings(
        metadata_dir=store["metadata_dir"],
        repo_base_dir=store["repo_base_dir"],
        output_dir=store["output_dir"],
    )
