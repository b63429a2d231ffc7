"""
Library manager settings.

Centralized directory and transfer settings. Values come from, in increasing
order of precedence: built-in defaults, an optional JSON config file, and
environment variables.

Modes:
- Production (default): ~/.fblib/
- Development (FBLIB_DEV_MODE=1): ~/.fblib/dev/ (isolated from prod)

Environment variables:
- FBLIB_HOME: Data directory root
- FBLIB_USER_DIR: User library directory
- FBLIB_BUILTIN_DIR: IDE built-in library directory
- FBLIB_SKETCH_DIR: Sketch-local library directory
- FBLIB_DOWNLOADS_DIR: Shared downloads directory
- FBLIB_INDEX_PATH: Library index JSON file
- FBLIB_DOWNLOAD_TIMEOUT: Socket timeout for downloads, in seconds
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from fblib.libraries.models import InstallLocation

DEFAULT_DOWNLOAD_TIMEOUT = 30.0


def is_dev_mode() -> bool:
    """Check if development mode is enabled."""
    return os.environ.get("FBLIB_DEV_MODE") == "1"


def get_default_data_dir() -> Path:
    """Get the data directory root respecting FBLIB_HOME and FBLIB_DEV_MODE."""
    home_env = os.environ.get("FBLIB_HOME")
    if home_env:
        return Path(home_env).expanduser().resolve()
    if is_dev_mode():
        return Path.home() / ".fblib" / "dev"
    return Path.home() / ".fblib"


@dataclass
class LibrarySettings:
    """Directories and transfer settings for the library manager.

    Attributes:
        data_dir: Root of fblib state
        user_dir: Directory of user-installed libraries
        downloads_dir: Shared archive download directory
        index_path: Library index JSON file
        builtin_dir: IDE built-in library directory (optional)
        sketch_dir: Sketch-local library directory (optional)
        download_timeout: Socket timeout for downloads, in seconds
    """

    data_dir: Path
    user_dir: Path
    downloads_dir: Path
    index_path: Path
    builtin_dir: Optional[Path] = None
    sketch_dir: Optional[Path] = None
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT

    @classmethod
    def for_data_dir(cls, data_dir: Path) -> "LibrarySettings":
        """Default layout under a single data directory."""
        return cls(
            data_dir=data_dir,
            user_dir=data_dir / "libraries",
            downloads_dir=data_dir / "staging" / "libraries",
            index_path=data_dir / "library_index.json",
        )

    def location_dir(self, location: "InstallLocation") -> Path:
        """Directory backing an install location.

        Raises:
            InstallLocationError: If the location has no configured directory
        """
        from fblib.libraries.errors import InstallLocationError
        from fblib.libraries.models import InstallLocation

        if location == InstallLocation.USER:
            return self.user_dir
        if location == InstallLocation.BUILTIN and self.builtin_dir is not None:
            return self.builtin_dir
        if location == InstallLocation.SKETCH and self.sketch_dir is not None:
            return self.sketch_dir
        raise InstallLocationError(f"No directory configured for install location '{location.value}'")

    def configured_locations(self) -> dict["InstallLocation", Path]:
        """All install locations that have a directory."""
        from fblib.libraries.errors import InstallLocationError
        from fblib.libraries.models import InstallLocation

        result = {}
        for location in InstallLocation:
            try:
                result[location] = self.location_dir(location)
            except InstallLocationError:
                continue
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "data_dir": str(self.data_dir),
            "user_dir": str(self.user_dir),
            "downloads_dir": str(self.downloads_dir),
            "index_path": str(self.index_path),
            "builtin_dir": str(self.builtin_dir) if self.builtin_dir else None,
            "sketch_dir": str(self.sketch_dir) if self.sketch_dir else None,
            "download_timeout": self.download_timeout,
        }


_PATH_KEYS = {
    "user_dir": "FBLIB_USER_DIR",
    "builtin_dir": "FBLIB_BUILTIN_DIR",
    "sketch_dir": "FBLIB_SKETCH_DIR",
    "downloads_dir": "FBLIB_DOWNLOADS_DIR",
    "index_path": "FBLIB_INDEX_PATH",
}


def load_settings(config_file: Optional[Path] = None) -> LibrarySettings:
    """Load settings from defaults, an optional JSON file, and the environment.

    Args:
        config_file: Optional JSON file with any of the LibrarySettings keys

    Returns:
        Fully populated LibrarySettings

    Raises:
        ValueError: If the config file is not a JSON object or a value is invalid
    """
    file_values: dict[str, Any] = {}
    if config_file is not None and config_file.exists():
        with open(config_file, encoding="utf-8") as f:
            try:
                file_values = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid config file {config_file}: {e}") from e
        if not isinstance(file_values, dict):
            raise ValueError(f"Config file {config_file} must contain a JSON object")

    data_dir = get_default_data_dir()
    if "data_dir" in file_values and not os.environ.get("FBLIB_HOME"):
        data_dir = Path(file_values["data_dir"]).expanduser()

    settings = LibrarySettings.for_data_dir(data_dir)

    for key, env_name in _PATH_KEYS.items():
        value = os.environ.get(env_name) or file_values.get(key)
        if value:
            setattr(settings, key, Path(value).expanduser())

    timeout = os.environ.get("FBLIB_DOWNLOAD_TIMEOUT") or file_values.get("download_timeout")
    if timeout is not None:
        try:
            settings.download_timeout = float(timeout)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid download timeout: {timeout!r}") from e

    return settings
