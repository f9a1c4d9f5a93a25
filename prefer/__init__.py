"""Find, parse and watch configuration files by name."""

from loguru import logger

from .config import Configuration, ResolvedSource  # noqa: F401
from .discovery import Candidate, CandidatePath, resolve, search_paths  # noqa: F401
from .errors import (  # noqa: F401
    InvalidName,
    IoError,
    NotFound,
    ParseError,
    PathNotFound,
    PreferError,
    TypeMismatch,
    UnsupportedFormat,
    WatchError,
)
from .formats import FormatPlugin, FormatRegistry, FormatTag  # noqa: F401
from .loader import Loader, find_config_file, load, load_path  # noqa: F401
from .logging_utils import log_operation, setup_logging  # noqa: F401
from .providers import LocalFileSystem, StaticPaths, SystemPaths  # noqa: F401
from .settings import PreferSettings, get_settings  # noqa: F401
from .watch import SnapshotStream, Watcher, WatchEvent, WatchState, watch, watch_path  # noqa: F401

__version__ = "0.3.0"

# Silent until the application opts in via setup_logging().
logger.disable("prefer")
