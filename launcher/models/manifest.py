"""
Version manifests.

Two JSON documents drive the version chain:

* the local manifest (``version.json`` inside the installation), which names
  the installed version; the incremental archive for that version is found by
  formatting the version code into a fixed URL template::

      {"versionCode": "5"}

* the remote bootstrap manifest, fetched only when nothing is installed yet,
  which points at the latest full archive::

      {"latestUrl": "https://downloads.example.com/builds/windows/latest.zip"}
"""

from pathlib import Path

import msgspec
from loguru import logger

from launcher.utils.constants import VERSION_PLACEHOLDER
from launcher.utils.exception import LauncherError, ManifestParseError


class LocalManifestDocument(msgspec.Struct, rename="camel"):
    version_code: str


class BootstrapManifest(msgspec.Struct, rename="camel"):
    latest_url: str


class VersionManifest(msgspec.Struct, frozen=True):
    """The installed version and the archive that moves it forward."""

    version_code: str
    download_url: str


def versioned_archive_url(url_template: str, version_code: str) -> str:
    """
    Format the incremental archive URL for a version.

    :param url_template: Template containing a single ``{version}`` placeholder
    :param version_code: Version identifier read from the local manifest
    :return: The archive URL
    """
    if VERSION_PLACEHOLDER not in url_template:
        raise LauncherError(
            f"URL template has no {VERSION_PLACEHOLDER} placeholder: {url_template}"
        )
    return url_template.replace(VERSION_PLACEHOLDER, version_code)


def read_version_manifest(manifest_path: Path, url_template: str) -> VersionManifest:
    """
    Read the local manifest and derive the versioned download URL.

    :param manifest_path: Path to the local ``version.json``
    :param url_template: Template for incremental archive URLs
    :return: The version manifest
    :raises ManifestParseError: If the file is unreadable, not JSON, or has no
        string ``versionCode``
    """
    try:
        raw = manifest_path.read_bytes()
    except OSError as e:
        raise ManifestParseError(f"Could not read {manifest_path}: {e}") from e

    try:
        document = msgspec.json.decode(raw, type=LocalManifestDocument)
    except msgspec.DecodeError as e:
        raise ManifestParseError(f"Invalid versionCode in {manifest_path}: {e}") from e

    manifest = VersionManifest(
        version_code=document.version_code,
        download_url=versioned_archive_url(url_template, document.version_code),
    )
    logger.debug(f"Local manifest reports version {manifest.version_code}")
    return manifest


def parse_bootstrap_manifest(body: bytes | str) -> BootstrapManifest:
    """
    Decode a remote bootstrap manifest.

    :param body: Raw response body
    :return: The bootstrap manifest
    :raises ManifestParseError: If the body is not JSON or has no string ``latestUrl``
    """
    try:
        manifest = msgspec.json.decode(body, type=BootstrapManifest)
    except msgspec.DecodeError as e:
        raise ManifestParseError(f"Invalid latestUrl in bootstrap manifest: {e}") from e
    if not manifest.latest_url:
        raise ManifestParseError("Bootstrap manifest has an empty latestUrl")
    return manifest
