class LauncherError(Exception):
    """Base exception for everything the update engine raises."""

    pass


class DownloadError(LauncherError):
    """Raised when a remote resource could not be retrieved."""

    pass


class TransportError(DownloadError):
    """
    Raised on connectivity failures: DNS, refused connections, TLS errors,
    timeouts and streams that break off mid-body.
    """

    pass


class HttpStatusError(DownloadError):
    """Raised when the server answers with a non-2xx status code."""

    def __init__(self, status_code: int, url: str = "") -> None:
        message = f"HTTP error: {status_code}"
        if url:
            message += f" for {url}"
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class UnexpectedHtmlResponse(DownloadError):
    """
    Raised when an HTML page comes back where a JSON manifest was expected.

    This is almost always a captive portal or a filtering proxy, so the body
    is kept around for the user to inspect.
    """

    def __init__(self, body: str, url: str = "") -> None:
        super().__init__(f"Received an HTML response instead of JSON from {url}")
        self.body = body
        self.url = url


class ManifestParseError(LauncherError):
    """Raised when a manifest is not valid JSON or lacks a required field."""

    pass


class CorruptPatch(LauncherError):
    """
    Raised when a binary diff program is malformed or does not fit the
    file it is applied to.
    """

    pass


class LauncherFilesystemError(LauncherError):
    """Raised when a create/write/delete operation fails."""

    pass


class ArchiveOpenError(LauncherFilesystemError):
    """Raised when the staged archive itself cannot be opened or parsed."""

    pass


class UnsafeEntryPath(LauncherFilesystemError):
    """Raised for archive entries that point outside the installation directory."""

    pass


class ChainLengthExceeded(LauncherError):
    """Raised when the remote manifest keeps advancing past the configured bound."""

    pass


class TargetProcessError(LauncherError):
    """Raised when the target process refuses to exit."""

    pass
