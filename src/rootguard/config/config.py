import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from rootguard.errors import ConfigError

# Priority: ./.env > ../.env
cwd = Path.cwd()
local_env = cwd / ".env"
parent_env = cwd.parent / ".env"

env_file = None
if local_env.exists():
    env_file = local_env
elif parent_env.exists():
    env_file = parent_env

if env_file:
    load_dotenv(env_file, override=False)

DEFAULT_TRASH_DIR_NAME = ".trash"


class RootguardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROOTGUARD_",
        env_file=env_file,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    allowed_dirs: str = ""
    case_sensitive: Optional[bool] = None
    trash_dir_name: str = DEFAULT_TRASH_DIR_NAME
    tool_timeout_s: float = 120.0
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3000

    def directory_list(self) -> list[str]:
        return [d.strip() for d in self.allowed_dirs.split(",") if d.strip()]


def load_settings() -> RootguardSettings:
    return RootguardSettings()


def expand_home(path: str, home_dir: Optional[str] = None) -> str:
    """Expand a leading ``~`` or ``~/`` to the home directory. ``~user`` is left alone."""
    home = home_dir or str(Path.home())
    if path == "~":
        return home
    if path.startswith("~/") or path.startswith("~" + os.sep):
        return os.path.join(home, path[2:])
    return path


def default_case_sensitive() -> bool:
    return os.name != "nt"


@dataclass(frozen=True)
class SandboxConfig:
    """Immutable start-up configuration shared by the sandbox and lifecycle manager.

    ``allowed_roots`` are absolute, symlink-resolved directories in the order
    they were configured; ``configured_roots`` are the same directories before
    symlink resolution. The trash directory always lives inside the first root.
    """

    allowed_roots: Tuple[str, ...]
    configured_roots: Tuple[str, ...]
    trash_dir: str
    case_sensitive: bool
    working_dir: str
    home_dir: str
    tool_timeout_s: float = 120.0

    @classmethod
    def from_directories(
        cls,
        directories: Iterable[str],
        *,
        trash_dir_name: str = DEFAULT_TRASH_DIR_NAME,
        case_sensitive: Optional[bool] = None,
        working_dir: Optional[str] = None,
        home_dir: Optional[str] = None,
        tool_timeout_s: float = 120.0,
    ) -> "SandboxConfig":
        home = home_dir or str(Path.home())
        work = os.path.abspath(working_dir or os.getcwd())

        roots: list[str] = []
        configured: list[str] = []
        for raw in directories:
            expanded = expand_home(raw, home)
            absolute = os.path.normpath(os.path.join(work, expanded))
            if not os.path.isdir(absolute):
                raise ConfigError(f"Allowed directory does not exist or is not a directory: {raw}")
            configured.append(absolute)
            roots.append(os.path.realpath(absolute))

        if not roots:
            raise ConfigError("At least one allowed directory must be configured")

        if (
            not trash_dir_name
            or trash_dir_name in (".", "..")
            or "/" in trash_dir_name
            or os.sep in trash_dir_name
        ):
            raise ConfigError(f"Trash directory name must be a single path segment: {trash_dir_name!r}")

        return cls(
            allowed_roots=tuple(roots),
            configured_roots=tuple(configured),
            trash_dir=os.path.join(roots[0], trash_dir_name),
            case_sensitive=default_case_sensitive() if case_sensitive is None else case_sensitive,
            working_dir=work,
            home_dir=home,
            tool_timeout_s=tool_timeout_s,
        )

    @classmethod
    def from_settings(
        cls,
        settings: RootguardSettings,
        directories: Optional[Iterable[str]] = None,
    ) -> "SandboxConfig":
        """CLI directories, when given, take precedence over ROOTGUARD_ALLOWED_DIRS."""
        dirs = list(directories) if directories else settings.directory_list()
        return cls.from_directories(
            dirs,
            trash_dir_name=settings.trash_dir_name,
            case_sensitive=settings.case_sensitive,
            tool_timeout_s=settings.tool_timeout_s,
        )
