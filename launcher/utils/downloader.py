"""
Streaming HTTP downloads with progress reporting and protocol fallback.

Archive downloads are streamed in fixed-size chunks straight to disk; a
:class:`~launcher.models.progress.DownloadProgress` sample is emitted after
every chunk. When a secure (``https://``) request fails at the transport
level, the same resource is requested once more over ``http://``. The
fallback never repeats.
"""

import time
from pathlib import Path
from typing import Callable, Optional

import requests
from loguru import logger

from launcher.models.progress import DownloadProgress
from launcher.utils.constants import (
    DOWNLOAD_CHUNK_SIZE,
    HTML_CONTENT_TYPE,
    INSECURE_SCHEME,
    PROGRESS_LOG_INTERVAL,
    REQUEST_TIMEOUT,
    SECURE_SCHEME,
    USER_AGENT,
)
from launcher.utils.exception import (
    HttpStatusError,
    LauncherFilesystemError,
    TransportError,
    UnexpectedHtmlResponse,
)

DownloadProgressCallback = Callable[[DownloadProgress], None]


def insecure_fallback_url(url: str) -> Optional[str]:
    """
    Return the ``http://`` twin of an ``https://`` URL, or None for any other scheme.

    >>> insecure_fallback_url("https://example.com/a.zip")
    'http://example.com/a.zip'
    """
    if url[: len(SECURE_SCHEME)].lower() == SECURE_SCHEME:
        return INSECURE_SCHEME + url[len(SECURE_SCHEME) :]
    return None


def _content_length(response: requests.Response) -> int:
    try:
        return max(int(response.headers.get("content-length", 0)), 0)
    except (TypeError, ValueError):
        return 0


class Downloader:
    """
    Fetches remote resources over HTTP(S).

    :param session: Session to issue requests with; one is created if omitted
    :param timeout: Per-request connect/read timeout in seconds
    :param chunk_size: Bytes read from the body per iteration
    :param user_agent: User-Agent header sent with every request
    :param clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = REQUEST_TIMEOUT,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
        user_agent: str = USER_AGENT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.user_agent = user_agent
        self._clock = clock

    def fetch(
        self,
        url: str,
        dest: Path,
        on_progress: Optional[DownloadProgressCallback] = None,
    ) -> None:
        """
        Stream ``url`` into ``dest``.

        :param url: Resource to download
        :param dest: Destination file, truncated before writing
        :param on_progress: Called with a progress sample after every chunk
        :raises TransportError: On connection failures, after the one fallback
        :raises HttpStatusError: On a non-2xx response
        :raises LauncherFilesystemError: If ``dest`` cannot be written
        """
        try:
            self._fetch_to_file(url, dest, on_progress)
        except TransportError as e:
            fallback = insecure_fallback_url(url)
            if fallback is None:
                raise
            logger.warning(f"HTTPS download failed ({e}), trying HTTP...")
            self._fetch_to_file(fallback, dest, on_progress)

    def fetch_json(self, url: str) -> bytes:
        """
        Fetch a small JSON document into memory.

        :param url: Manifest URL
        :return: The raw response body
        :raises UnexpectedHtmlResponse: If the server answered with an HTML page
        :raises TransportError: On connection failures, after the one fallback
        :raises HttpStatusError: On a non-2xx response
        """
        try:
            return self._fetch_json_once(url)
        except TransportError as e:
            fallback = insecure_fallback_url(url)
            if fallback is None:
                raise
            logger.warning(f"HTTPS request failed ({e}), trying HTTP...")
            return self._fetch_json_once(fallback)

    def _open(self, url: str) -> requests.Response:
        logger.debug(f"GET {url}")
        try:
            return self.session.get(
                url,
                stream=True,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
            )
        except requests.RequestException as e:
            logger.warning(f"Request to {url} failed: {e}")
            raise TransportError(f"Failed to connect to {url}: {e}") from e

    def _check_status(self, response: requests.Response, url: str) -> None:
        logger.debug(f"HTTP response status: {response.status_code}")
        if not 200 <= response.status_code < 300:
            raise HttpStatusError(response.status_code, url)

    def _fetch_json_once(self, url: str) -> bytes:
        response = self._open(url)
        with response:
            content_type = response.headers.get("content-type", "")
            try:
                body = response.content
            except requests.RequestException as e:
                raise TransportError(f"Connection to {url} broke off: {e}") from e

            if HTML_CONTENT_TYPE in content_type.lower():
                logger.error(f"Expected JSON from {url} but received {content_type}")
                raise UnexpectedHtmlResponse(body.decode("utf-8", errors="replace"), url)
            self._check_status(response, url)
            return body

    def _fetch_to_file(
        self,
        url: str,
        dest: Path,
        on_progress: Optional[DownloadProgressCallback],
    ) -> None:
        logger.info(f"Starting download from URL: {url}")
        response = self._open(url)
        with response:
            self._check_status(response, url)
            total = _content_length(response)
            if total:
                logger.info(f"File size: {total / (1024 * 1024):.2f} MB")

            done = 0
            since_last_log = 0
            start = self._clock()
            try:
                with open(dest, "wb") as out_file:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        out_file.write(chunk)
                        done += len(chunk)
                        since_last_log += len(chunk)

                        progress = DownloadProgress.sample(done, total, self._clock() - start)
                        if on_progress is not None:
                            on_progress(progress)
                        if since_last_log >= PROGRESS_LOG_INTERVAL:
                            logger.debug(
                                f"Download progress: {done}/{total} bytes - "
                                f"Speed: {progress.instantaneous_rate:.2f} B/s"
                            )
                            since_last_log = 0
            except requests.RequestException as e:
                dest.unlink(missing_ok=True)
                logger.error(f"Download from {url} broke off after {done} bytes: {e}")
                raise TransportError(f"Download from {url} broke off: {e}") from e
            except OSError as e:
                dest.unlink(missing_ok=True)
                logger.error(f"Could not write download to {dest}: {e}")
                raise LauncherFilesystemError(f"Could not write {dest}: {e}") from e

        elapsed = self._clock() - start
        logger.info(f"Downloaded {done} bytes from {url} in {elapsed:.2f}s")
