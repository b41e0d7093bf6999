# Package Root
from rootguard.config.config import SandboxConfig
from rootguard.errors import (
    SandboxError, AccessDenied, ParentMissing, NotFound,
    CrossDeviceMove, AlreadyExists, IOFailure, CopyFailed, ConfigError,
)
from rootguard.service import FileService, create_file_service
