from pathlib import Path
from enum import Enum, verify, UNIQUE
from typing import List, Optional
import subprocess
import shutil
import logging

from .selector import Prompter

logger = logging.getLogger(__name__)


class CompressionException(Exception):
    pass


@verify(UNIQUE)
class Compression(Enum):
    GZIP = "gzip"
    BZIP2 = "bzip2"
    XZ = "xz"
    ZSTD = "zstd"
    # Reserved, not supported.
    ZIP = "zip"
    SEVEN_ZIP = "7z"

    @staticmethod
    def from_string(program: str) -> "Compression":
        name = program.lower()
        if name in ("gzip", "gz"):
            return Compression.GZIP
        elif name in ("bzip2", "bz2"):
            return Compression.BZIP2
        elif name == "xz":
            return Compression.XZ
        elif name in ("zstd", "zst"):
            return Compression.ZSTD
        elif name == "zip":
            return Compression.ZIP
        elif name == "7z":
            return Compression.SEVEN_ZIP
        else:
            raise CompressionException(f"Invalid compression program {program}")

    def __str__(self):
        return self.value

    @property
    def supported(self) -> bool:
        return self not in (Compression.ZIP, Compression.SEVEN_ZIP)

    @property
    def suffix(self) -> str:
        if self == Compression.GZIP:
            return ".gz"
        elif self == Compression.BZIP2:
            return ".bz2"
        elif self == Compression.XZ:
            return ".xz"
        elif self == Compression.ZSTD:
            return ".zst"
        else:
            raise CompressionException(f"Compression with {self} is not supported.")

    def command(self, archive_path: Path) -> List[str]:
        if self == Compression.ZSTD:
            return [self.value, "-q", "-c", str(archive_path)]
        elif self.supported:
            return [self.value, "-c", str(archive_path)]
        else:
            raise CompressionException(f"Compression with {self} is not supported.")

    def is_available(self) -> bool:
        return shutil.which(self.value) is not None


def compress(archive_path: Path, compression: Compression, keep_archive: bool = False) -> Path:
    if not compression.supported:
        raise CompressionException(f"Compression with {compression} is not supported.")

    output_path = archive_path.with_name(archive_path.name + compression.suffix)
    args = compression.command(archive_path)
    logger.info(f"Compressing {archive_path} with {compression}")
    logger.debug(f"Running compression command: {' '.join(args)} > {output_path}")

    try:
        with output_path.open("wb") as output:
            cp = subprocess.run(args, stdout=output, stderr=subprocess.PIPE, text=True)
    except OSError as e:
        output_path.unlink(missing_ok=True)
        raise CompressionException(f"Failed to run {args} command! {e}")
    except BaseException:
        output_path.unlink(missing_ok=True)
        raise

    if cp.returncode != 0:
        output_path.unlink(missing_ok=True)
        raise CompressionException(
            f"Failed to run {cp.args} command (exit status {cp.returncode})! {cp.stderr}"
        )

    if not keep_archive:
        logger.debug(f"Removing uncompressed archive {archive_path}")
        archive_path.unlink()
    logger.info(f"Created compressed archive {output_path}")
    return output_path


def choose_compression(
    prompter: Prompter, requested: Optional[str] = None
) -> Optional[Compression]:
    """Determine the compression program, or None to leave the archive uncompressed.

    A program requested on the command line must be installed. A program picked
    interactively that isn't installed leads to a new prompt.
    """
    if requested is not None:
        if requested.lower() == "none":
            return None
        compression = Compression.from_string(requested)
        if not compression.supported:
            raise CompressionException(f"Compression with {compression} is not supported.")
        if not compression.is_available():
            raise CompressionException(f"Compression program {compression} is not installed.")
        return compression

    if not prompter.confirm("Compress the archive?", default=True):
        return None

    options = [str(c) for c in Compression]
    while True:
        compression = Compression.from_string(
            prompter.pick_one(options, "Select a compression program:")
        )
        if not compression.supported:
            raise CompressionException(f"Compression with {compression} is not supported.")
        if compression.is_available():
            return compression
        logger.warning(f"Compression program {compression} is not installed, choose another one.")
