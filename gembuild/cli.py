"""Command line entry point: ``gembuild <gem_name> <gem_version>``."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Callable, Optional, Sequence

from dotenv import load_dotenv

from . import __version__
from .common.errors import GemBuildError, UsageError, VerificationWarning
from .common.models import BuildOutcome, BuildRequest
from .core.config import BuilderConfig, load_builder_config
from .core.pipeline import PrecompilePipeline

logger = logging.getLogger(__name__)
_console_handler: Optional[logging.Handler] = None

EPILOG = """\
Examples:
  gembuild semacode-ruby19 0.7.4
  gembuild nokogiri 1.13.10
  gembuild mysql2 0.5.4

The tool will:
  1. Download and compile the gem in a Docker container
  2. Create a precompiled version compatible with Bundler
  3. Install the gem locally for immediate use
"""


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[34m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelname)
        return f"{color}{message}{self.RESET}" if color else message


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI on stderr."""
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    formatter_cls = ColoredFormatter if handler.stream.isatty() else logging.Formatter
    handler.setFormatter(formatter_cls("%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"))

    global _console_handler
    root = logging.getLogger()
    if _console_handler is not None:
        root.removeHandler(_console_handler)
    _console_handler = handler
    root.addHandler(handler)
    root.setLevel(level)

    # Reduce noise from HTTP client libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="gembuild",
        description="Build a Ruby gem with C extensions using Docker for compatibility.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("gem_name", help="Name of the Ruby gem to build")
    parser.add_argument("gem_version", help="Version of the gem to build")
    parser.add_argument("--config", help="YAML or JSON file with builder settings.")
    parser.add_argument("--platform", help="Docker platform to compile for (default: linux/arm64).")
    parser.add_argument("--base-image", help="Ruby base image (default: ruby:2.5-slim).")
    parser.add_argument(
        "--keep-output",
        action="store_true",
        default=None,
        help="Keep ./output and ./precompiled after the run.",
    )
    parser.add_argument(
        "--strict-verify",
        action="store_true",
        default=None,
        help="Exit non-zero when the installed gem cannot be required.",
    )
    parser.add_argument(
        "--skip-index-check",
        dest="check_index",
        action="store_false",
        default=None,
        help="Do not look the version up on rubygems.org before building.",
    )
    parser.add_argument(
        "--no-uninstall",
        dest="uninstall_existing",
        action="store_false",
        default=None,
        help="Keep host installations of the gem instead of removing them first.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_request(args: argparse.Namespace) -> BuildRequest:
    """Validate the positional values and derive the build request."""
    gem_name = args.gem_name.strip()
    gem_version = args.gem_version.strip()
    if not gem_name or not gem_version:
        raise UsageError("Gem name and version must not be empty")

    request = BuildRequest(gem_name=gem_name, gem_version=gem_version)
    if request.container_id.startswith("-"):
        raise UsageError(
            f"Gem name '{gem_name}' must start with a letter or digit",
            f"derived container name '{request.container_id}' is not a valid Docker name",
        )
    logger.info("Building gem: %s v%s", request.gem_name, request.gem_version)
    logger.info("Container name: %s", request.container_id)
    return request


def resolve_config(args: argparse.Namespace) -> BuilderConfig:
    try:
        config = load_builder_config(args.config) if args.config else BuilderConfig()
        return config.with_overrides(
            platform=args.platform,
            base_image=args.base_image,
            keep_output=args.keep_output,
            strict_verify=args.strict_verify,
            check_index=args.check_index,
            uninstall_existing=args.uninstall_existing,
        )
    except (FileNotFoundError, ValueError) as exc:
        raise UsageError("Invalid configuration", str(exc)) from exc


def report_success(outcome: BuildOutcome, config: BuilderConfig) -> None:
    request = outcome.request
    logger.info("🎉 SUCCESS! %s gem is ready to use!", request.gem_name)
    if outcome.loaded_as:
        logger.info("   - Works with: require '%s'", outcome.loaded_as)
    logger.info("   - Works with: bundle install")
    if config.keep_output and outcome.artifact.gem_path:
        logger.info("   - Built gem saved: %s", outcome.artifact.gem_path)


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt(f"received signal {signum}")


def main(
    argv: Optional[Sequence[str]] = None,
    pipeline_factory: Callable[[BuilderConfig], PrecompilePipeline] = PrecompilePipeline,
) -> int:
    """
    Entry point for the gem builder.

    Returns:
        0 on success, otherwise the exit code of the error that stopped the run.
    """
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    verbose = "-v" in argv or "--verbose" in argv
    setup_logging(verbose)
    load_dotenv()

    try:
        args = parser.parse_args(argv)
        request = parse_request(args)
        config = resolve_config(args)
    except UsageError as exc:
        logger.error("%s", exc)
        parser.print_help(sys.stderr)
        return exc.exit_code

    logger.info("🚀 Starting %s v%s build process...", request.gem_name, request.gem_version)
    pipeline = pipeline_factory(config)
    config = pipeline.config
    previous_handler = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        outcome = pipeline.run(request)
    except GemBuildError as exc:
        logger.error("%s", exc)
        return exc.exit_code
    except KeyboardInterrupt:
        logger.warning("⚠️  Build interrupted; resources were cleaned up")
        return 130
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)

    if not outcome.verified and config.strict_verify:
        logger.error("Build completed but gem test failed")
        return VerificationWarning.exit_code

    report_success(outcome, config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
