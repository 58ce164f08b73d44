"""Constants used in the project."""

from enum import Enum


class SourceKind(Enum):
    """Kinds of package sources a manifest can declare.

    Args:
        Enum (string): Section header used for the source in the lockfile.
    """

    GEM = "GEM"
    GIT = "GIT"
    PATH = "PATH"


class UpdateLevel(Enum):
    """How far an unlocked package may move from its locked version.

    Args:
        Enum (string): Update level name.
    """

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    TOOL_VERSION = "2.5.3"
    DEFAULT_SOURCE = "https://rubygems.org/"
    GENERIC_PLATFORM = "ruby"
    LOCKFILE_NAME = "Gemfile.lock"
    MANIFEST_NAMES = ["depsmith.yml", "depsmith.yaml", "depsmith.json"]
    CONFIG_ENV_VAR = "DEPSMITH_CONFIG"
    CONFIG_LOCATIONS = [
        "./depsmith.yml",
        "~/.config/depsmith/depsmith.yml",
    ]
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV_VAR = "DEPSMITH_LOG_LEVEL"

    # Resolver tunables
    MAX_RESOLUTION_STEPS = 100000
    ALLOW_PRERELEASE = False
    CHECKSUM_ALGORITHM = "sha256"

    # Fetch layer tunables
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300
    FETCH_MAX_CONCURRENCY = 8
    COMPACT_INDEX_PATH = "info/"

    # Leading arch or OS tokens of a platform suffix, matched as whole dash-separated
    # tokens with an optional numeric tail ("mingw32", "darwin22")
    PLATFORM_KEYWORDS = [
        "darwin",
        "linux",
        "mingw",
        "mswin",
        "java",
        "jruby",
        "x86_64",
        "aarch64",
        "arm64",
        "x86",
        "i386",
        "i686",
        "x64",
        "arm",
        "universal",
    ]
