"""
Command-line entrypoints for `oss-audit`.
"""

from __future__ import annotations

import argparse
import enum
import logging
import os
import sys
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import IO, Iterator, NoReturn

from oss_audit import __version__
from oss_audit._audit import AuditOptions, Auditor, AuditResult
from oss_audit._cache import CacheError, CacheStore
from oss_audit._dependency_source import DependencySourceError, GemfileLockSource
from oss_audit._format import ColumnsFormat, JsonFormat, VulnerabilityFormat
from oss_audit._service import MAX_BATCH_SIZE, AuthError, OssIndexService, TransportError
from oss_audit._state import AuditSpinner, AuditState, Status
from oss_audit._util import assert_never

logging.basicConfig()
logger = logging.getLogger(__name__)

# NOTE: We configure the top package logger, rather than the root logger,
# to avoid overly verbose logging in third-party code by default.
package_logger = logging.getLogger("oss_audit")
package_logger.setLevel(os.environ.get("OSS_AUDIT_LOGLEVEL", "INFO").upper())


@contextmanager
def _output_io(name: Path) -> Iterator[IO[str]]:  # pragma: no cover
    """
    A context managing wrapper for oss-audit's `--output` flag. This allows us
    to avoid `argparse.FileType`'s "eager" file creation, which is generally
    the wrong/unexpected behavior when dealing with fallible processes.
    """
    if str(name) in {"stdout", "-"}:
        yield sys.stdout
    else:
        with name.open("w") as io:
            yield io


@enum.unique
class OutputFormatChoice(str, enum.Enum):
    """
    Output formats supported by the `oss-audit` CLI.
    """

    Columns = "columns"
    Json = "json"

    def to_format(self, output_desc: bool) -> VulnerabilityFormat:
        if self is OutputFormatChoice.Columns:
            return ColumnsFormat(output_desc)
        elif self is OutputFormatChoice.Json:
            return JsonFormat(output_desc)
        else:
            assert_never(self)  # pragma: no cover

    def __str__(self) -> str:
        return self.value


@enum.unique
class VulnerabilityDescriptionChoice(str, enum.Enum):
    """
    Whether or not vulnerability descriptions should be added to the `oss-audit` output.
    """

    On = "on"
    Off = "off"
    Auto = "auto"

    def to_bool(self, format_: OutputFormatChoice) -> bool:
        if self is VulnerabilityDescriptionChoice.On:
            return True
        elif self is VulnerabilityDescriptionChoice.Off:
            return False
        elif self is VulnerabilityDescriptionChoice.Auto:
            return bool(format_ is OutputFormatChoice.Json)
        else:
            assert_never(self)  # pragma: no cover

    def __str__(self) -> str:
        return self.value


@enum.unique
class ProgressSpinnerChoice(str, enum.Enum):
    """
    Whether or not `oss-audit` should display a progress spinner.
    """

    On = "on"
    Off = "off"

    def __bool__(self) -> bool:
        return self is ProgressSpinnerChoice.On

    def __str__(self) -> str:
        return self.value


def _enum_help(msg: str, e: type[enum.Enum]) -> str:  # pragma: no cover
    """
    Render a `--help`-style string for the given enumeration.
    """
    return f"{msg} (choices: {', '.join(str(v) for v in e)})"


def _fatal(msg: str) -> NoReturn:  # pragma: no cover
    """
    Log a fatal error to the standard error stream and exit.
    """
    # NOTE: We buffer the logger when the progress spinner is active,
    # ensuring that the fatal message is formatted on its own line.
    logger.error(msg)
    sys.exit(1)


def _parser() -> argparse.ArgumentParser:  # pragma: no cover
    parser = argparse.ArgumentParser(
        prog="oss-audit",
        description="audit a Gemfile.lock for dependencies with known vulnerabilities",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "lockfile",
        type=Path,
        nargs="?",
        default=Path("Gemfile.lock"),
        help="the lockfile to audit",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="remove every cached result and exit",
    )
    parser.add_argument(
        "-f",
        "--format",
        type=OutputFormatChoice,
        choices=OutputFormatChoice,
        default=OutputFormatChoice.Columns,
        metavar="FORMAT",
        help=_enum_help("the format to emit audit results in", OutputFormatChoice),
    )
    parser.add_argument(
        "--desc",
        type=VulnerabilityDescriptionChoice,
        choices=VulnerabilityDescriptionChoice,
        nargs="?",
        const=VulnerabilityDescriptionChoice.On,
        default=VulnerabilityDescriptionChoice.Auto,
        help="include a description for each vulnerability; "
        "`auto` defaults to `on` for the `json` format",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="collect all coordinates but do not perform the auditing step",
    )
    parser.add_argument(
        "--username",
        default=os.environ.get("OSS_INDEX_USERNAME"),
        help="the OSS Index username; defaults to $OSS_INDEX_USERNAME",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("OSS_INDEX_TOKEN"),
        help="the OSS Index API token; defaults to $OSS_INDEX_TOKEN",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        help="the directory to cache OSS Index results in",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=MAX_BATCH_SIZE,
        help=f"the number of coordinates to send per request (at most {MAX_BATCH_SIZE})",
    )
    parser.add_argument(
        "--progress-spinner",
        type=ProgressSpinnerChoice,
        choices=ProgressSpinnerChoice,
        default=ProgressSpinnerChoice.On,
        help="display a progress spinner",
    )
    parser.add_argument("--timeout", type=int, default=15, help="set the socket timeout")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="run with additional debug logging; supply multiple times to increase verbosity",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        metavar="FILE",
        help="output results to the given file",
        default="stdout",
    )
    return parser


def _parse_args(parser: argparse.ArgumentParser) -> argparse.Namespace:  # pragma: no cover
    args = parser.parse_args()

    # Configure logging upfront, so that we don't miss anything.
    if args.verbose >= 1:
        package_logger.setLevel("DEBUG")
    if args.verbose >= 2:
        logging.getLogger().setLevel("DEBUG")

    # NOTE: Don't log the token itself.
    logger.debug(f"parsed arguments: {argparse.Namespace(**{**vars(args), 'token': '***'})}")

    if not 1 <= args.batch_size <= MAX_BATCH_SIZE:
        parser.error(f"--batch-size must be between 1 and {MAX_BATCH_SIZE}")

    return args


def _summarize(result: AuditResult) -> str:
    vuln_records = result.vulnerable
    vuln_count = sum(len(r.vulnerabilities) for r in vuln_records)
    pkg_count = len(vuln_records)
    if vuln_count == 0:
        return "No known vulnerabilities found"
    return (
        f"Found {vuln_count} known "
        f"{'vulnerability' if vuln_count == 1 else 'vulnerabilities'} "
        f"in {pkg_count} {'package' if pkg_count == 1 else 'packages'}"
    )


def audit() -> None:  # pragma: no cover
    """
    The primary entrypoint for `oss-audit`.
    """
    parser = _parser()
    args = _parse_args(parser)

    cache = CacheStore(args.cache_dir)
    if args.clear_cache:
        try:
            cache.clear()
        except CacheError as e:
            _fatal(str(e))
        print("oss-audit cache cleared", file=sys.stderr)
        return

    service = OssIndexService(args.username, args.token, args.timeout)
    output_desc = args.desc.to_bool(args.format)
    formatter = args.format.to_format(output_desc)
    source = GemfileLockSource(args.lockfile)

    with ExitStack() as stack:
        actors = []
        if args.progress_spinner:
            actors.append(AuditSpinner("Collecting coordinates"))
        state = stack.enter_context(AuditState(members=actors))

        try:
            coordinates = list(source.collect())
            required_by = source.reverse_dependencies()
        except DependencySourceError as e:
            _fatal(str(e))

        state.update_state(Status(f"Auditing {len(coordinates)} coordinates"))
        auditor = Auditor(
            cache,
            service,
            options=AuditOptions(batch_size=args.batch_size, dry_run=args.dry_run),
            state=state,
        )
        result = auditor.audit(coordinates)

    if args.dry_run:
        return

    if result.error is not None:
        logger.error(
            f"Audit incomplete, {len(result)} of {len(coordinates)} audited: {result.error}"
        )
        if isinstance(result.error, TransportError):
            # The most common source of connection errors is corporate blocking,
            # so we offer a bit of advice.
            logger.error("Tip: your network may be blocking OSS Index")
        elif isinstance(result.error, AuthError):
            logger.error("Tip: check the values of --username and --token")

    print(_summarize(result), file=sys.stderr)
    if result.vulnerable or formatter.is_manifest:
        with _output_io(args.output) as io:
            print(formatter.format(result, required_by), file=io)

    if result.vulnerable or not result.ok:
        sys.exit(1)
