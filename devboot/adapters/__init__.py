"""Adapters — bindings to the host: processes, filesystem and HTTP.

In-memory fakes live in ``devboot.adapters.mock`` (not re-exported here,
it depends on the core service contracts).
"""

from devboot.adapters.http import DefaultHttpClient, HttpClient, HttpResponse
from devboot.adapters.shell.command import Commander, DefaultCommander, Result
from devboot.adapters.shell.filesystem import DefaultFileSystem, FileSystem

__all__ = [
    "Commander",
    "DefaultCommander",
    "DefaultFileSystem",
    "DefaultHttpClient",
    "FileSystem",
    "HttpClient",
    "HttpResponse",
    "Result",
]
