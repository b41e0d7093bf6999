from rootguard.sandbox.backend import FileBackend, DirEntry, FileStat
from rootguard.sandbox.guard import PathSandbox, AuthorizedPath
from rootguard.sandbox.local import LocalBackend

__all__ = [
    "FileBackend", "DirEntry", "FileStat",
    "PathSandbox", "AuthorizedPath", "LocalBackend",
]
