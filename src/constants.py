"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    NO_PUBLISH = 0
    NEEDS_PUBLISH = 1
    ERROR = 2


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROGRAM_NAME = "needs-publish"
    VERSION = "0.1.0"

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    PACKAGE_JSON_FILE = "package.json"
    ARCHIVE_MANIFEST_PATH = "package/package.json"
    CONFIG_FILES = [
        ".needs-publish.yml",
        ".needs-publish.yaml",
        ".needs-publish.json",
    ]

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "NEEDS_PUBLISH_LOG_LEVEL"
    DEFAULT_LOG_LEVEL = "WARNING"

    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    PACK_TIMEOUT = 300  # Timeout in seconds for `npm pack`
    NPM_CONFIG_TIMEOUT = 10

    # Nested npm: aliases deeper than this are treated as opaque tags
    ALIAS_MAX_DEPTH = 8
    ARCHIVE_HASH_ALGORITHM = "sha512"
