"""Argument parsing functionality for ModGate."""

import argparse

from constants import Constants, FailurePolicy, WriterKind


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="modgate",
        description=(
            "ModGate - Add JPMS module descriptors to artifacts built without one"
        ),
        add_help=True,
    )

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Batch configuration file (YAML or JSON)",
                        action="store", type=str)

    single = parser.add_argument_group(
        "single module",
        "Describe one module from the command line; a configured batch still supplies module names.",
    )
    single.add_argument("--artifact",
                        dest="ARTIFACT",
                        help="Artifact coordinate, i.e. groupId:artifactId[:extension[:classifier]]:version",
                        action="store", type=str)
    single.add_argument("--module-name",
                        dest="MODULE_NAME",
                        help="Module name to assign to --artifact",
                        action="store", type=str)
    single.add_argument("--additional-dependencies",
                        dest="ADDITIONAL_DEPENDENCIES",
                        help="Comma-separated coordinates always required by the module",
                        action="store", type=str)
    single.add_argument("--exports",
                        dest="EXPORTS",
                        help="Exports rules separated by ';', i.e. 'com.foo.*; !com.foo.internal'",
                        action="store", type=str)
    single.add_argument("--requires",
                        dest="REQUIRES",
                        help="Requires rules separated by ';', i.e. 'static com.bar; !com.baz.*'",
                        action="store", type=str)
    single.add_argument("--uses",
                        dest="USES",
                        help="Service interfaces used by the module, separated by ';'",
                        action="store", type=str)
    single.add_argument("--add-service-uses",
                        dest="ADD_SERVICE_USES",
                        help="Accepted for compatibility; has no effect beyond a warning, as used services "
                             "aren't discovered. List them with --uses instead",
                        action="store_true")
    single.add_argument("--module-info-source",
                        dest="MODULE_INFO_SOURCE",
                        help="Literal module-info.java text to add to --artifact instead of assembling one",
                        action="store", type=str)
    single.add_argument("--module-info-file",
                        dest="MODULE_INFO_FILE",
                        help="module-info.java file to add to --artifact instead of assembling one",
                        action="store", type=str)
    single.add_argument("--main-class",
                        dest="MAIN_CLASS",
                        help="Main class recorded in the module (jar writer only)",
                        action="store", type=str)

    parser.add_argument("-o", "--output-dir",
                        dest="OUTPUT_DIR",
                        help=f"Directory receiving the results (default: {Constants.OUTPUT_DIRECTORY})",
                        action="store", type=str)
    parser.add_argument("--working-dir",
                        dest="WORKING_DIR",
                        help=f"Scratch directory for compilation (default: {Constants.WORKING_DIRECTORY})",
                        action="store", type=str)
    parser.add_argument("--local-repo",
                        dest="LOCAL_REPO",
                        help="Local Maven repository (default: $MODGATE_LOCAL_REPOSITORY or ~/.m2/repository)",
                        action="store", type=str)
    parser.add_argument("--remote-repo",
                        dest="REMOTE_REPOS",
                        help="Remote Maven repository URL; may be repeated (default: Maven Central)",
                        action="append", type=str)
    parser.add_argument("--offline",
                        dest="OFFLINE",
                        help="Only use the local repository",
                        action="store_true")
    parser.add_argument("--writer",
                        dest="WRITER",
                        help="Write module-info.java sources or patched JARs",
                        action="store", type=str.lower,
                        choices=[w.value for w in WriterKind])
    parser.add_argument("--overwrite",
                        dest="OVERWRITE",
                        help="Replace existing output files",
                        action="store_true")
    parser.add_argument("--failure-policy",
                        dest="FAILURE_POLICY",
                        help="Keep going after a module fails (collect) or stop (fail-fast)",
                        action="store", type=str.lower,
                        choices=[p.value for p in FailurePolicy])
    parser.add_argument("-j", "--jobs",
                        dest="JOBS",
                        help="Number of modules assembled in parallel",
                        action="store", type=int)

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=Constants.SUPPORTED_LOG_LEVELS)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    args = parser.parse_args(argv)
    if not args.CONFIG and not args.ARTIFACT:
        parser.error("one of -c/--config or --artifact is required")
    if args.MODULE_INFO_SOURCE is not None and args.MODULE_INFO_FILE is not None:
        parser.error("only one of --module-info-source and --module-info-file may be given")
    if args.ARTIFACT and not (args.MODULE_NAME or args.MODULE_INFO_SOURCE is not None or args.MODULE_INFO_FILE is not None):
        parser.error("--module-name, --module-info-source or --module-info-file is required with --artifact")
    return args
