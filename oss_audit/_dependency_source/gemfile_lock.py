"""
Collect dependencies from Bundler's `Gemfile.lock` files.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

from oss_audit._dependency_source.interface import DependencySource, DependencySourceError
from oss_audit._service import Coordinate

logger = logging.getLogger(__name__)

# A top-level gem in a `specs:` block: exactly four spaces of indentation.
_SPEC_LINE = re.compile(r"^    (?P<name>[^\s(]+) \((?P<version>[^)]+)\)$")

# One of that gem's own requirements: six spaces, with an optional version constraint.
_REQUIREMENT_LINE = re.compile(r"^      (?P<name>[^\s(]+)(?: \([^)]*\))?$")


def _strip_platform(version: str) -> str:
    # Platform-specific gems are locked as e.g. `1.13.8-x86_64-linux`.
    # RubyGems versions never contain a `-`, so everything after it is the platform.
    return version.split("-", 1)[0]


class GemfileLockSource(DependencySource):
    """
    Wraps `Gemfile.lock` dependency collection as a dependency source.

    Only gems from the `GEM` (i.e. RubyGems) section are collected: gems from `GIT`
    and `PATH` sources are not published, and so have no vulnerability reports.
    """

    def __init__(self, filename: Path) -> None:
        """
        Create a new `GemfileLockSource`.

        `filename` is the path to a `Gemfile.lock` to parse.
        """

        self._filename = filename

    def collect(self) -> Iterator[Coordinate]:
        """
        Collect all of the coordinates discovered by this `GemfileLockSource`, in file order.

        A gem locked for several platforms is only collected once.

        Raises a `GemfileLockSourceError` on any errors.
        """
        coordinates, _ = self._parse()
        yield from coordinates

    def reverse_dependencies(self) -> dict[Coordinate, list[Coordinate]]:
        """
        Map each collected coordinate to the coordinates of the gems that require it,
        in file order.

        Gems that nothing else requires (i.e. those named directly in the `Gemfile`)
        map to an empty list.

        Raises a `GemfileLockSourceError` on any errors.
        """
        coordinates, requirements = self._parse()
        by_name = {_gem_name(c): c for c in coordinates}

        reverse: dict[Coordinate, list[Coordinate]] = {c: [] for c in coordinates}
        for parent in coordinates:
            for name in requirements[parent]:
                child = by_name.get(name)
                if child is None:
                    # A requirement satisfied from a `GIT` or `PATH` source, or only on
                    # another platform.
                    logger.debug(f"{parent} requires {name}, which isn't a locked gem")
                    continue
                if parent not in reverse[child]:
                    reverse[child].append(parent)
        return reverse

    def _parse(self) -> tuple[list[Coordinate], dict[Coordinate, list[str]]]:
        """
        Returns the locked coordinates in file order, and each one's required gem names.
        """
        try:
            lines = self._filename.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise GemfileLockSourceError(f"{self._filename}: could not read lockfile") from e

        section: str | None = None
        in_specs = False
        seen_gem_section = False
        current: Coordinate | None = None
        coordinates: list[Coordinate] = []
        requirements: dict[Coordinate, list[str]] = {}
        for line in lines:
            if not line.strip():
                section, in_specs, current = None, False, None
                continue

            if not line.startswith(" "):
                section, in_specs, current = line.strip(), False, None
                seen_gem_section = seen_gem_section or section == "GEM"
                continue

            if section != "GEM":
                continue

            if line == "  specs:":
                in_specs = True
                continue

            if not in_specs:
                continue

            match = _SPEC_LINE.match(line)
            if match is None:
                requirement = _REQUIREMENT_LINE.match(line)
                if requirement is None:
                    raise GemfileLockSourceError(
                        f"{self._filename}: malformed spec line: {line.strip()!r}"
                    )
                if current is not None and requirement.group("name") not in requirements[current]:
                    requirements[current].append(requirement.group("name"))
                continue

            version = _strip_platform(match.group("version"))
            current = Coordinate(f"pkg:gem/{match.group('name')}@{version}")
            if current in requirements:
                logger.debug(f"skipping duplicate (multi-platform) gem: {current}")
                continue
            coordinates.append(current)
            requirements[current] = []

        if not seen_gem_section:
            raise GemfileLockSourceError(f"{self._filename}: missing GEM section in lockfile")

        return coordinates, requirements


def _gem_name(coordinate: Coordinate) -> str:
    return coordinate[len("pkg:gem/") :].rsplit("@", 1)[0]


class GemfileLockSourceError(DependencySourceError):
    """A `Gemfile.lock` specific `DependencySourceError`."""

    pass
