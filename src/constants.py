"""Constants used in the project."""

import os
from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    MODULE_ERRORS = 3
    CONFIG_ERROR = 4


class Scopes(Enum):
    """Maven dependency scopes.

    Args:
        Enum (string): Declared scope values found in POM files.
    """

    COMPILE = "compile"
    PROVIDED = "provided"
    RUNTIME = "runtime"
    TEST = "test"
    SYSTEM = "system"
    IMPORT = "import"


class FailurePolicy(Enum):
    """How a batch reacts to a single module failing."""

    COLLECT = "collect"
    FAIL_FAST = "fail-fast"


class WriterKind(Enum):
    """Descriptor writers selectable from the CLI."""

    SOURCE = "source"
    JAR = "jar"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REPOSITORY_URL_MAVEN_CENTRAL = "https://repo1.maven.org/maven2"
    LOCAL_REPOSITORY = os.path.join(os.path.expanduser("~"), ".m2", "repository")
    MAVEN_METADATA_FILE = "maven-metadata.xml"
    POM_NAMESPACE = "{http://maven.apache.org/POM/4.0.0}"
    DEFAULT_EXTENSION = "jar"
    ROOT_SCOPE = Scopes.PROVIDED.value
    # Deep enough for real-world trees; guards against pathological POM graphs
    MAX_COLLECT_DEPTH = 16
    MAX_PARENT_DEPTH = 8

    OUTPUT_DIRECTORY = os.path.join("target", "generated-sources", "modules")
    WORKING_DIRECTORY = os.path.join("target", "modgate")
    MODULE_INFO_SOURCE = "module-info.java"
    MODULE_INFO_CLASS = "module-info.class"
    JAVAC = "javac"
    JAR = "jar"

    SUPPORTED_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "MODGATE_LOG_LEVEL"
    ENV_LOCAL_REPOSITORY = "MODGATE_LOCAL_REPOSITORY"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    USER_AGENT = "ModGate/1.0"
