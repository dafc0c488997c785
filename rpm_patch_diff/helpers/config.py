from pathlib import Path
from dataclasses import dataclass
from typing import Any, Dict, Optional, Self
from jsonschema import validate, ValidationError
import yaml
import logging

logger = logging.getLogger(__name__)

DEFAULT_METADATA_DIR = Path("/var/log/example-data")
DEFAULT_REPO_BASE_DIR = Path("/data/repos")
OUTPUT_SUBDIR = "patch-diffs"

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "metadata_dir": {"type": "string"},
        "repo_base_dir": {"type": "string"},
        "output_dir": {"type": "string"},
        "compression": {
            "type": "string",
            "enum": ["none", "gzip", "gz", "bzip2", "bz2", "xz", "zstd", "zst", "zip", "7z"],
        },
        "keep_archive": {"type": "boolean"},
    },
    "additionalProperties": False,
}


class ConfigException(Exception):
    pass


def load_config(config_path: Path) -> Dict[str, Any]:
    if not config_path.is_file():
        raise ConfigException(f"Configuration {config_path} is not a file.")
    with config_path.open("r") as fd:
        try:
            config = yaml.safe_load(fd) or {}
        except yaml.YAMLError as e:
            raise ConfigException(f"Configuration {config_path} is not valid YAML: {e}")
    try:
        validate(config, CONFIG_SCHEMA)
    except ValidationError as e:
        raise ConfigException(f"Invalid configuration {config_path}: {e.message}")
    logger.debug(f"Loaded configuration {config_path}")
    return config


@dataclass(kw_only=True, frozen=True)
class Settings:
    metadata_dir: Path = DEFAULT_METADATA_DIR
    repo_base_dir: Path = DEFAULT_REPO_BASE_DIR
    output_dir: Path = DEFAULT_REPO_BASE_DIR / OUTPUT_SUBDIR
    compression: Optional[str] = None
    keep_archive: bool = False

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        metadata_dir: Optional[Path] = None,
        repo_base_dir: Optional[Path] = None,
        output_dir: Optional[Path] = None,
        compression: Optional[str] = None,
        keep_archive: Optional[bool] = None,
    ) -> Self:
        """Merge explicit values over the configuration file over the defaults."""
        config = load_config(config_path) if config_path else {}

        def pick_path(value: Optional[Path], key: str) -> Optional[Path]:
            if value is not None:
                return value
            if key in config:
                return Path(config[key])
            return None

        base = pick_path(repo_base_dir, "repo_base_dir") or DEFAULT_REPO_BASE_DIR
        return cls(
            metadata_dir=pick_path(metadata_dir, "metadata_dir") or DEFAULT_METADATA_DIR,
            repo_base_dir=base,
            output_dir=pick_path(output_dir, "output_dir") or base / OUTPUT_SUBDIR,
            compression=compression if compression is not None else config.get("compression"),
            keep_archive=(
                keep_archive if keep_archive is not None else config.get("keep_archive", False)
            ),
        )
