from pathlib import Path
from tempfile import TemporaryDirectory
from contextlib import ExitStack
from typing import Dict, Iterable, Iterator, List, Optional, Self, Tuple
from dataclasses import dataclass
from datetime import date
import logging

logger = logging.getLogger(__name__)


class SnapshotException(Exception):
    pass


class MissingSnapshotException(SnapshotException):
    pass


class ScanException(Exception):
    pass


@dataclass(kw_only=True, frozen=True, eq=True)
class Snapshot:
    """The listing of a single repository as recorded on a given date."""

    date: str
    repo: str
    path: Path

    @classmethod
    def locate(cls, metadata_dir: Path, snapshot_date: str, repo: str) -> Self:
        path = metadata_dir / snapshot_date / f"{repo}.txt"
        if not path.is_file():
            raise MissingSnapshotException(
                f"No snapshot of repository {repo} for {snapshot_date} at {path}"
            )
        return cls(date=snapshot_date, repo=repo, path=path)


def read_listing(listing: Path) -> Iterator[str]:
    if not listing.is_file():
        raise MissingSnapshotException(f"Listing {listing} does not exist.")
    try:
        with listing.open("r", encoding="utf-8", errors="surrogateescape") as fd:
            for line in fd:
                entry = line.rstrip("\r\n")
                if entry:
                    yield entry
    except OSError as e:
        raise SnapshotException(f"Failed to read listing {listing}: {e}")


def sort_listing(listing: Path) -> List[str]:
    return sorted(set(read_listing(listing)))


def write_sorted_listing(listing: Path, destination: Path) -> Path:
    entries = sort_listing(listing)
    with destination.open("w", encoding="utf-8", errors="surrogateescape") as fd:
        fd.writelines(f"{entry}\n" for entry in entries)
    logger.debug(f"Wrote {len(entries)} sorted entries of {listing} to {destination}")
    return destination


def subtract_sorted(old: List[str], new: List[str]) -> Tuple[str, ...]:
    """Entries of `new` that are not in `old`.

    Both sequences must be sorted and free of duplicates.
    """
    added: List[str] = []
    i = 0
    for entry in new:
        while i < len(old) and old[i] < entry:
            i += 1
        if i < len(old) and old[i] == entry:
            continue
        added.append(entry)
    return tuple(added)


def diff(old_listing: Path, new_listing: Path) -> Tuple[str, ...]:
    return subtract_sorted(sort_listing(old_listing), sort_listing(new_listing))


class ScratchContext:
    """Run scoped owner of the per repository scratch directories and diff results.

    Every scratch directory is deleted when the context is closed, whatever the
    reason for leaving the `with` block.
    """

    def __init__(self) -> None:
        self._stack = ExitStack()
        self.scratch_dirs: Dict[str, Path] = {}
        self.diff_results: Dict[str, Tuple[str, ...]] = {}

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        logger.debug(f"Removing {len(self.scratch_dirs)} scratch directories.")
        self._stack.close()
        self.scratch_dirs.clear()

    def scratch_dir(self, repo: str) -> Path:
        if repo not in self.scratch_dirs:
            tmp_dir = self._stack.enter_context(
                TemporaryDirectory(prefix=f"rpm-patch-diff-{repo}-")
            )
            self.scratch_dirs[repo] = Path(tmp_dir)
            logger.debug(f"Allocated scratch directory {tmp_dir} for repository {repo}")
        return self.scratch_dirs[repo]

    def diff_repo(self, repo: str, old: Snapshot, new: Snapshot) -> Tuple[str, ...]:
        scratch = self.scratch_dir(repo)
        old_sorted = write_sorted_listing(old.path, scratch / f"{old.date}.txt")
        new_sorted = write_sorted_listing(new.path, scratch / f"{new.date}.txt")
        result = diff(old_sorted, new_sorted)
        self.diff_results[repo] = result
        return result


def format_date(value: date | str) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return value


def list_snapshot_dates(metadata_dir: Path) -> List[str]:
    if not metadata_dir.is_dir():
        raise SnapshotException(f"Snapshot directory {metadata_dir} does not exist.")
    dates = sorted(p.name for p in metadata_dir.iterdir() if p.is_dir())
    if len(dates) == 0:
        raise SnapshotException(f"Snapshot directory {metadata_dir} contains no snapshots.")
    return dates


def list_repos(repo_base_dir: Path, exclude: Iterable[Path] = ()) -> List[str]:
    if not repo_base_dir.is_dir():
        raise ScanException(f"Repository directory {repo_base_dir} does not exist.")
    excluded = {p.resolve() for p in exclude}
    return sorted(
        p.name
        for p in repo_base_dir.iterdir()
        if p.is_dir() and p.resolve() not in excluded
    )


def scan(
    repo_base_dir: Path,
    metadata_dir: Path,
    start_date: date | str,
    today: date | str,
    context: ScratchContext,
    exclude: Optional[Iterable[Path]] = None,
) -> List[str]:
    start = format_date(start_date)
    end = format_date(today)
    logger.info(f"Looking for new packages in {repo_base_dir} between {start} and {end}")

    candidates: List[str] = []
    for repo in list_repos(repo_base_dir, exclude or ()):
        try:
            new = Snapshot.locate(metadata_dir, end, repo)
            old = Snapshot.locate(metadata_dir, start, repo)
        except MissingSnapshotException as e:
            logger.warning(f"Skipping repository {repo}: {e}")
            continue

        added = context.diff_repo(repo, old, new)
        if len(added) > 0:
            logger.info(f"Found {len(added)} new file(s) in repository {repo}")
            candidates.append(repo)
        else:
            logger.debug(f"No new files in repository {repo}")

    if len(candidates) == 0:
        raise ScanException(
            f"No repositories with new packages between {start} and {end}."
        )
    return candidates
