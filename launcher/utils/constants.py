APP_NAME = "patch-launcher"
USER_AGENT = "PatchLauncher/1.0"

# Installation directory layout
LOCAL_MANIFEST_NAME = "version.json"
STAGED_ARCHIVE_NAME = "update.zip"
SETTINGS_FILE_NAME = "launcher.json"
DEFAULT_TARGET_EXECUTABLE = "Game.exe"

# Remote endpoints
DEFAULT_BOOTSTRAP_MANIFEST_URL = "https://downloads.example.com/builds/windows/version.json"
DEFAULT_PATCH_URL_TEMPLATE = "https://downloads.example.com/builds/windows/patches/{version}.zip"
VERSION_PLACEHOLDER = "{version}"

# Archive entry-name suffixes
DIRECTORY_SUFFIX = "/"
PATCH_SUFFIX = ".patch"
DELETE_SUFFIX = ".delete"

# Network
REQUEST_TIMEOUT = 30.0
DOWNLOAD_CHUNK_SIZE = 8192
PROGRESS_LOG_INTERVAL = 512 * 1024
SECURE_SCHEME = "https://"
INSECURE_SCHEME = "http://"
HTML_CONTENT_TYPE = "text/html"

# Version chain
MAX_CHAIN_LENGTH = 100

# Target process handling
PROCESS_POLL_INTERVAL = 0.1
PROCESS_EXIT_TIMEOUT = 30.0

ERROR_RESPONSE_FILENAME = "patch-launcher-error.html"
HTML_INTERFERENCE_MESSAGE = (
    "Received an HTML response instead of JSON. A security appliance or firewall "
    "might be blocking the request. Please check your firewall software."
)
MANUAL_DOWNLOAD_MESSAGE = (
    "Please try again. If the issue persists, you can download the latest "
    "version manually."
)
