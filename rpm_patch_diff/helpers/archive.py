from pathlib import Path
from datetime import date
from typing import Mapping, Sequence
from tempfile import NamedTemporaryFile
import tarfile
import logging
import os

from .snapshot import format_date

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "disconnected-rpm-update"
REPODATA = "repodata"


class ArchiveException(Exception):
    pass


def archive_path(output_dir: Path, start_date: date | str, today: date | str) -> Path:
    return (
        output_dir
        / f"{ARCHIVE_PREFIX}-from-{format_date(start_date)}-to-{format_date(today)}.tar"
    )


def _add_sorted(tar: tarfile.TarFile, path: Path, arcname: str) -> None:
    tar.add(path, arcname=arcname, recursive=False)
    if path.is_dir() and not path.is_symlink():
        for child in sorted(path.iterdir()):
            _add_sorted(tar, child, f"{arcname}/{child.name}")


def _relative_name(repo_base_dir: Path, file_path: Path) -> str:
    try:
        return file_path.relative_to(repo_base_dir).as_posix()
    except ValueError:
        raise ArchiveException(
            f"File {file_path} is not located in the repository directory {repo_base_dir}."
        )


def archive(
    repo_base_dir: Path,
    confirmed_repos: Sequence[str],
    diff_results: Mapping[str, Sequence[str]],
    output_path: Path,
) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.exists():
        logger.warning(f"Replacing existing archive {output_path}")

    with NamedTemporaryFile(
        dir=output_path.parent, prefix=f".{output_path.name}.", delete=False
    ) as tmp_file:
        partial_path = Path(tmp_file.name)

    try:
        with tarfile.open(partial_path, mode="w") as tar:
            for repo in sorted(confirmed_repos):
                new_files = sorted(diff_results.get(repo, ()))
                logger.info(
                    f"Adding {len(new_files)} new file(s) and the {REPODATA} of repository {repo}"
                )
                repodata = repo_base_dir / repo / REPODATA
                for new_file in new_files:
                    file_path = Path(new_file)
                    arcname = _relative_name(repo_base_dir, file_path)
                    # Added below along with the whole directory.
                    if file_path.is_relative_to(repodata):
                        continue
                    if not file_path.exists():
                        raise ArchiveException(f"New file {file_path} no longer exists.")
                    logger.debug(f"Appending {arcname}")
                    tar.add(file_path, arcname=arcname, recursive=False)

                if not repodata.is_dir():
                    raise ArchiveException(
                        f"Repository {repo} has no {REPODATA} directory at {repodata}."
                    )
                _add_sorted(tar, repodata, f"{repo}/{REPODATA}")
        os.replace(partial_path, output_path)
    except (OSError, tarfile.TarError) as e:
        partial_path.unlink(missing_ok=True)
        raise ArchiveException(f"Failed to write archive {output_path}: {e}")
    except BaseException:
        partial_path.unlink(missing_ok=True)
        raise

    logger.info(f"Created archive {output_path}")
    return output_path
