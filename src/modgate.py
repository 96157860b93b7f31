"""ModGate - add JPMS module descriptors to legacy artifacts.

    Returns:
        int: Exit code
"""
import logging
import sys

from constants import ExitCodes
from errors import ConfigurationError, ModGateError, RepositoryAccessError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args
from batch_config import BatchConfiguration
from modules.assembly import run_batch
from modules.writer import create_writer
from registry.maven.client import MavenRepositoryClient

logger = logging.getLogger(__name__)


def _exit_code_for(error: ModGateError) -> ExitCodes:
    if isinstance(error, ConfigurationError):
        return ExitCodes.CONFIG_ERROR
    if isinstance(error, RepositoryAccessError):
        return ExitCodes.CONNECTION_ERROR
    return ExitCodes.MODULE_ERRORS


def run(args) -> ExitCodes:
    """Load the batch, process it and map the result to an exit code."""
    try:
        batch = BatchConfiguration.from_args(args)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return ExitCodes.CONFIG_ERROR
    except OSError as e:
        logger.error("Couldn't read configuration: %s", e)
        return ExitCodes.FILE_ERROR

    client = MavenRepositoryClient(
        local_repository=batch.local_repository,
        remote_repositories=batch.remote_repositories,
        offline=batch.offline,
    )
    writer = create_writer(batch.writer, batch.working_directory, batch.overwrite_existing_files)

    try:
        result = run_batch(batch, client, writer)
    except ModGateError as e:
        logger.error("Batch aborted: %s", e)
        return _exit_code_for(e)

    for failure in result.failures:
        logger.error("%s: %s", failure.label, failure.error)
    if not result.ok:
        return ExitCodes.MODULE_ERRORS
    return ExitCodes.SUCCESS


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(getattr(args, "LOG_LEVEL", None), getattr(args, "LOG_FILE", None))

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    code = run(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action="main",
                                outcome=code.name.lower())
        )
    sys.exit(code.value)


if __name__ == "__main__":
    main()
