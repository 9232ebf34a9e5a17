"""needs-publish: decide whether an npm package must be republished.

Exit codes: 0 when no publish is needed, 1 when it is, 2 on error.
"""

import json
import logging
import sys

from args import parse_args
from cli_config import build_options
from common.archive import TarballReader
from common.errors import NeedsPublishError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from comparators.models import Significance
from constants import ExitCodes
from publish_check import NeedsPublishResult, PublishChecker
from registry.npm import NpmPacker, NpmRegistryClient

logger = logging.getLogger(__name__)

_MARKERS = {
    Significance.CRITICAL: "[!]",
    Significance.SIGNIFICANT: "[*]",
    Significance.INFORMATIONAL: "[ ]",
}


def _render_value(value):
    return json.dumps(value, sort_keys=True) if not isinstance(value, str) else value


def format_result(result: NeedsPublishResult, verbose: bool = False) -> str:
    """Render a result for the terminal."""
    headline = "Package NEEDS publishing" if result.needs_publish else "Package does NOT need publishing"
    lines = [headline, f"Reason: {result.reason}"]
    if verbose and result.changes:
        lines.append("Changes:")
        for change in result.changes:
            detail = change.to_dict()
            text = f"  {_MARKERS[change.significance]} {change.type}"
            if change.field is not None:
                text += f": {change.field}"
            if "oldValue" in detail or "newValue" in detail:
                old = _render_value(detail.get("oldValue"))
                new = _render_value(detail.get("newValue"))
                text += f" ({old} -> {new})"
            lines.append(text)
    return "\n".join(lines)


def exit_code_for(result: NeedsPublishResult) -> int:
    return (ExitCodes.NEEDS_PUBLISH if result.needs_publish else ExitCodes.NO_PUBLISH).value


def run(args) -> int:
    """Run one check for parsed ``args`` and print the outcome; returns the exit code."""
    try:
        options = build_options(args)
        checker = PublishChecker(
            NpmRegistryClient(registry=options.registry, cwd=options.cwd),
            NpmPacker(),
            TarballReader(),
            options,
        )
        result = checker.check(options.cwd)
    except NeedsPublishError as exc:
        logger.error("%s", exc)
        if args.JSON:
            print(json.dumps({"error": True, "message": str(exc)}, indent=2))
        else:
            print(f"Error: {exc}", file=sys.stderr)
        return ExitCodes.ERROR.value

    if is_debug_enabled(logger):
        logger.debug(
            "Check finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="run",
                outcome="needs_publish" if result.needs_publish else "no_publish",
            ),
        )

    if args.JSON:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_result(result, verbose=args.VERBOSE))
    return exit_code_for(result)


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
