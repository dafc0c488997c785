# Add the parent directory to the path if this module is run directly (i.e. not imported)
# This is necessary to support both the script entry point and the direct invocation.
if not __package__ and __name__ == "__main__":
    import sys
    from pathlib import Path

    sys.path.append(str(Path(__file__).parent.parent))
    __package__ = Path(__file__).parent.name

import click
from pathlib import Path
from datetime import date
from rpm_patch_diff.helpers.config import Settings, ConfigException
from rpm_patch_diff.helpers.snapshot import (
    ScratchContext,
    SnapshotException,
    ScanException,
    list_snapshot_dates,
    scan,
)
from rpm_patch_diff.helpers.selector import (
    ClickPrompter,
    Prompter,
    SelectionException,
    parse_date,
    select_repos,
    select_start_date,
)
from rpm_patch_diff.helpers.archive import ArchiveException, archive, archive_path
from rpm_patch_diff.helpers.compression import (
    CompressionException,
    choose_compression,
    compress,
)
from typing import List, Optional
import sys
import logging

logger = logging.getLogger(__name__)


def run(
    settings: Settings,
    prompter: Prompter,
    since: Optional[str] = None,
    today: Optional[str] = None,
    repos: Optional[List[str]] = None,
) -> Optional[Path]:
    """Diff the snapshots, archive the selected repositories and optionally compress.

    Returns the path of the produced (possibly compressed) archive, or None if the
    user chose not to archive anything.
    """
    end = parse_date(today) if today else date.today()

    with ScratchContext() as context:
        dates = list_snapshot_dates(settings.metadata_dir)
        start = select_start_date(prompter, dates, since)

        candidates = scan(
            settings.repo_base_dir,
            settings.metadata_dir,
            start,
            end,
            context,
            exclude=[settings.output_dir],
        )
        logger.info(f"Found new packages in the repositories: {','.join(candidates)}")

        confirmed = select_repos(prompter, candidates, repos)
        if confirmed is None:
            logger.info("Selected 'none', no archive is created.")
            return None

        logger.info(f"Archiving the repositories: {','.join(confirmed)}")
        output = archive(
            settings.repo_base_dir,
            confirmed,
            context.diff_results,
            archive_path(settings.output_dir, start, end),
        )

    compression = choose_compression(prompter, settings.compression)
    if compression is None:
        logger.info(f"Leaving archive {output} uncompressed.")
        return output
    return compress(output, compression, settings.keep_archive)


@click.command()
@click.option(
    "--metadata-dir",
    envvar="METADATA_DIR",
    help="Directory holding the dated snapshot listings (default: /var/log/example-data)",
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option(
    "--repo-base-dir",
    envvar="REPO_BASE_DIR",
    help="Directory containing one sub-directory per repository (default: /data/repos)",
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option(
    "--output-dir",
    envvar="OUTPUT_DIR",
    help="Directory to store the archive in (default: <repo-base-dir>/patch-diffs)",
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option(
    "-c",
    "--config",
    "config_path",
    help="Path to a YAML configuration file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--since", help="Snapshot date to collect new packages from, skips the date prompt")
@click.option("--today", help="Snapshot date to collect new packages up to (default: today)")
@click.option(
    "-r",
    "--repo",
    "repos",
    multiple=True,
    help="Repository to archive, skips the repository prompt. Accepts 'all' and 'none'.",
)
@click.option(
    "--compression",
    type=click.Choice(
        ["none", "gzip", "bzip2", "xz", "zstd", "zip", "7z"], case_sensitive=False
    ),
    help="Compression program, skips the compression prompts",
)
@click.option(
    "--keep-archive/--remove-archive",
    default=None,
    help="Keep the uncompressed archive after compressing it (default: remove)",
)
@click.option(
    "-l",
    "--log",
    "loglevel",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    default="INFO",
)
def main(
    metadata_dir: Optional[Path],
    repo_base_dir: Optional[Path],
    output_dir: Optional[Path],
    config_path: Optional[Path],
    since: Optional[str],
    today: Optional[str],
    repos: List[str],
    compression: Optional[str],
    keep_archive: Optional[bool],
    loglevel: str,
) -> None:

    if loglevel == "DEBUG":
        logging.basicConfig(
            format="%(levelname)s:%(asctime)s %(message)s",
            level=getattr(logging, loglevel.upper()),
        )
    else:
        logging.basicConfig(
            format="%(levelname)s: %(message)s",
            level=getattr(logging, loglevel.upper()),
        )

    try:
        settings = Settings.load(
            config_path,
            metadata_dir=metadata_dir,
            repo_base_dir=repo_base_dir,
            output_dir=output_dir,
            compression=compression,
            keep_archive=keep_archive,
        )
        logger.debug(f"Using settings {settings}")
        run(settings, ClickPrompter(), since=since, today=today, repos=list(repos))
    except ConfigException as e:
        logger.fatal(f"Failed to load the configuration with reason: '{e}'")
        sys.exit(1)
    except (SnapshotException, ScanException) as e:
        logger.fatal(f"Failed to find new packages with reason: '{e}'")
        sys.exit(1)
    except SelectionException as e:
        logger.fatal(f"Invalid selection with reason: '{e}'")
        sys.exit(1)
    except ArchiveException as e:
        logger.fatal(f"Failed to create the archive with reason: '{e}'")
        sys.exit(1)
    except CompressionException as e:
        logger.fatal(f"Failed to compress the archive with reason: '{e}'")
        sys.exit(1)


if __name__ == "__main__":
    main()
