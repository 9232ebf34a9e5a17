"""Argument parsing functionality for needs-publish."""

import argparse
from constants import Constants

def build_parser():
    """Build the argument parser for the program."""
    parser = argparse.ArgumentParser(
        prog=Constants.PROGRAM_NAME,
        description=(
            "Decide whether a local npm package differs meaningfully from its latest published version"
        ),
        add_help=True,
    )

    parser.add_argument("DIRECTORY",
                        help="Package directory (default: --cwd or the current directory)",
                        nargs="?",
                        type=str)
    parser.add_argument("--cwd",
                        dest="CWD",
                        help="Package directory; the positional DIRECTORY wins when both are given",
                        action="store",
                        type=str)
    parser.add_argument("--registry",
                        dest="REGISTRY",
                        help="Registry URL (default: scoped npm config, then the public registry)",
                        action="store",
                        type=str)
    parser.add_argument("--json",
                        dest="JSON",
                        help="Print the result as JSON",
                        action="store_true")
    parser.add_argument("-v", "--verbose",
                        dest="VERBOSE",
                        help="List every change behind the verdict",
                        action="store_true")

    # Comparison options; None means "not given on the command line".
    parser.add_argument("--package-json-only",
                        dest="PACKAGE_JSON_ONLY",
                        help="Decide on package.json alone, ignoring other file changes",
                        action="store_const", const=True, default=None)
    parser.add_argument("--no-optional-deps",
                        dest="INCLUDE_OPTIONAL_DEPS",
                        help="Do not compare optionalDependencies",
                        action="store_const", const=False, default=None)
    parser.add_argument("--strict-narrowing",
                        dest="TREAT_NARROWING_AS_EQUIVALENT",
                        help="Report narrowed dependency ranges as significant",
                        action="store_const", const=False, default=None)
    parser.add_argument("--significant-field",
                        dest="SIGNIFICANT_FIELDS",
                        help="Treat an extra package.json field as significant (repeatable)",
                        action="append",
                        type=str)
    parser.add_argument("--ignore-field",
                        dest="IGNORE_FIELDS",
                        help="Never treat a package.json field as significant (repeatable)",
                        action="append",
                        type=str)

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help=f"Set the logging level (default: ${Constants.LOG_LEVEL_ENV} or WARNING)",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-V", "--version",
                        action="version",
                        version=f"%(prog)s {Constants.VERSION}")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
