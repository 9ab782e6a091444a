"""
Scrub log messages before loguru writes them.

Log files get attached to bug reports, so user names in paths and any
credentials embedded in download URLs are removed.
"""

import re

_WINDOWS_USER_PATH = re.compile(r"([A-Z]:\\Users\\)[^\\]+\\")
_LINUX_USER_PATH = re.compile(r"/home/[^/]+/")
_MAC_USER_PATH = re.compile(r"/Users/[^/]+/")
_URL_USERINFO = re.compile(r"(https?://)[^/@\s]+@")
_URL_QUERY = re.compile(r"(https?://[^\s?]+)\?[^\s]*")


def obfuscate_message(message: str, anonymize_path: bool = True) -> str:
    """
    Obfuscate the message such that it does not reveal user information.

    Args:
        message: The message to obfuscate.
        anonymize_path: Whether to anonymize user paths in the message.

    Returns:
        The obfuscated message.
    """
    if anonymize_path:
        message = _anonymize_path(message)
    return _strip_url_secrets(message)


def _anonymize_path(message: str) -> str:
    """Replace the user-name component of home-directory paths. OS agnostic."""
    message = _WINDOWS_USER_PATH.sub(r"\1...\\", message)
    message = _LINUX_USER_PATH.sub("/home/.../", message)
    return _MAC_USER_PATH.sub("/Users/.../", message)


def _strip_url_secrets(message: str) -> str:
    """Drop ``user:pass@`` and query strings (signed-URL tokens) from URLs."""
    message = _URL_USERINFO.sub(r"\1", message)
    return _URL_QUERY.sub(r"\1?...", message)
