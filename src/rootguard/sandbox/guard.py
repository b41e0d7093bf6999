"""PathSandbox — turns caller-supplied path strings into Authorized Paths.

Every tool and every archive entry goes through ``authorize`` before any
filesystem primitive sees the path. Nothing here touches the disk except to
read it (``realpath``/``lstat``); authorization has no side effects.

Resolution rules:
    existing target     → real (symlink-resolved) path, re-checked against the roots
    not-yet-existing    → absolute path as given, provided its parent's real path
                          is inside the roots
"""

from __future__ import annotations

import os
from typing import NewType, Tuple

from rootguard.config.config import SandboxConfig, expand_home
from rootguard.errors import AccessDenied, ParentMissing
from rootguard.logging.diagnostic import log_access_denied

AuthorizedPath = NewType("AuthorizedPath", str)


class PathSandbox:
    def __init__(self, config: SandboxConfig):
        self._config = config
        self._real_keys: Tuple[str, ...] = tuple(self._key(r) for r in config.allowed_roots)
        # Before resolution a path may still spell a root the way it was configured
        self._lexical_keys: Tuple[str, ...] = tuple(
            dict.fromkeys(self._real_keys + tuple(self._key(r) for r in config.configured_roots))
        )

    @property
    def config(self) -> SandboxConfig:
        return self._config

    @property
    def allowed_roots(self) -> Tuple[str, ...]:
        return self._config.allowed_roots

    # ── Comparison helpers (pure, no I/O) ───────────────────────────

    def _key(self, path: str) -> str:
        normalized = os.path.normpath(path)
        if self._config.case_sensitive:
            return normalized
        return normalized.casefold()

    def is_allowed(self, path: str, resolved: bool = True) -> bool:
        """Segment-wise prefix match: root ``/a/b`` admits ``/a/b/c`` but not ``/a/bc``.

        ``resolved`` paths are only matched against the real (symlink-free) roots.
        """
        key = self._key(path)
        for root in (self._real_keys if resolved else self._lexical_keys):
            if key == root:
                return True
            prefix = root if root.endswith(os.sep) else root + os.sep
            if key.startswith(prefix):
                return True
        return False

    def absolute(self, candidate: str) -> str:
        expanded = expand_home(candidate, self._config.home_dir)
        if os.path.isabs(expanded):
            return os.path.normpath(expanded)
        return os.path.normpath(os.path.join(self._config.working_dir, expanded))

    # ── Authorization ───────────────────────────────────────────────

    def authorize(self, candidate: str) -> AuthorizedPath:
        if "\x00" in candidate:
            raise self._deny("Path contains a NUL byte", candidate)

        absolute = self.absolute(candidate)
        if not self.is_allowed(absolute, resolved=False):
            raise self._deny("Access denied - path outside allowed directories", absolute)

        try:
            real = os.path.realpath(absolute, strict=True)
        except OSError:
            return self._authorize_new(absolute)

        if not self.is_allowed(real):
            raise self._deny("Access denied - symlink target outside allowed directories", absolute)
        return AuthorizedPath(real)

    def _authorize_new(self, absolute: str) -> AuthorizedPath:
        # A dangling symlink would redirect the write to wherever it points.
        if os.path.islink(absolute):
            target = os.path.realpath(absolute)
            if not self.is_allowed(target):
                raise self._deny("Access denied - symlink target outside allowed directories", absolute)

        parent = os.path.dirname(absolute)
        try:
            real_parent = os.path.realpath(parent, strict=True)
        except OSError:
            raise ParentMissing("Parent directory does not exist", parent) from None

        if not os.path.isdir(real_parent):
            raise ParentMissing("Parent path is not a directory", parent)
        if not self.is_allowed(real_parent):
            raise self._deny("Access denied - parent directory outside allowed directories", parent)
        return AuthorizedPath(absolute)

    def ensure_removable(self, path: str) -> None:
        """Refuse to move away an allowed root, the trash directory, or an ancestor of it.

        ``path`` is an Authorized Path of an existing entry. Roots and the
        trash stay in place for the lifetime of the process.
        """
        key = self._key(path)
        if key in self._real_keys:
            raise self._deny("Access denied - cannot move or delete an allowed root", path)
        trash = self._key(self._config.trash_dir)
        prefix = key if key.endswith(os.sep) else key + os.sep
        if trash == key or trash.startswith(prefix):
            raise self._deny("Access denied - cannot move or delete the trash directory", path)

    @staticmethod
    def _deny(detail: str, path: str) -> AccessDenied:
        log_access_denied(path, detail)
        return AccessDenied(detail, path)
