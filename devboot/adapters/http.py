"""
HTTP client — fetches installer scripts.

Only GET is needed.  ``DefaultHttpClient`` uses ``urllib.request``; a
non-2xx answer is returned as a response, while network failures raise
``DownloadError``.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass

from devboot import __version__
from devboot.core.errors import DownloadError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class HttpResponse:
    url: str
    status: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == 200


class HttpClient(ABC):
    @abstractmethod
    def get(self, url: str, timeout: float | None = None) -> HttpResponse:
        """GET ``url`` and return the whole body."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class DefaultHttpClient(HttpClient):
    def get(self, url: str, timeout: float | None = None) -> HttpResponse:
        logger.debug("GET %s", url)
        req = urllib.request.Request(url, headers={"User-Agent": f"devboot/{__version__}"})
        try:
            with urllib.request.urlopen(req, timeout=timeout or DEFAULT_TIMEOUT) as resp:
                return HttpResponse(url=url, status=resp.getcode(), body=resp.read())
        except urllib.error.HTTPError as e:
            logger.debug("GET %s returned HTTP %d", url, e.code)
            return HttpResponse(url=url, status=e.code, body=e.read() or b"")
        except (urllib.error.URLError, OSError) as e:
            reason = getattr(e, "reason", e)
            raise DownloadError(f"failed to fetch {url}: {reason}") from e
