"""Main API parser for scanning PHP source trees."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import pathspec

from phpapidoc.core.config.settings import ParserSettings, get_settings
from phpapidoc.core.exceptions import ExtractionError, PhpSyntaxError
from phpapidoc.core.logger.logger import get_logger

from .base import TreeSitterParser
from .docblock import DocBlockParser
from .extractor import DeclarationExtractor
from .inheritance import InheritanceEngine
from .models import ClassRecord, FailedPath, SourceUnit
from .symbols import SymbolTable

logger = get_logger(__name__)


class ApiParser:
    """Parse a PHP source tree into inheritance-resolved class records.

    Example:
        parser = ApiParser("/path/to/project", ["src"], ["src/vendor/"])
        parser.parse()
        mysql = parser.get_class("Docs\\\\Api\\\\Database\\\\Mysql")
    """

    def __init__(
        self,
        base_path: Path | str,
        source_paths: list[str] | str | None = None,
        ignore_paths: list[str] | str | None = None,
        settings: ParserSettings | None = None,
    ) -> None:
        """Initialize the API parser.

        Args:
            base_path: Directory that source and ignore paths are relative to.
            source_paths: Sub-paths to scan recursively.
            ignore_paths: Gitignore-style patterns anchored at the base path.
            settings: Parser settings. Uses global settings if not provided.
        """
        self.base_path = Path(base_path)
        self.source_paths = [source_paths] if isinstance(source_paths, str) else list(source_paths or [])
        self.ignore_paths = [ignore_paths] if isinstance(ignore_paths, str) else list(ignore_paths or [])
        self.settings = settings or get_settings().parser

        self._ignore_spec = (
            pathspec.GitIgnoreSpec.from_lines(
                ["/" + pattern.lstrip("/") for pattern in self.ignore_paths]
            )
            if self.ignore_paths
            else None
        )

        self._paths: list[Path] | None = None
        self._namespaces: list[str] = []
        self._failed_paths: list[FailedPath] = []
        self.table = SymbolTable()
        self.engine = InheritanceEngine(self.table)
        self._inheritance_resolved = False

        self._tree_parser = TreeSitterParser()
        self._local = threading.local()

    def _extractor(self) -> DeclarationExtractor:
        extractor = getattr(self._local, "extractor", None)
        if extractor is None:
            extractor = DeclarationExtractor(
                DocBlockParser(self.settings.markdown_extensions),
                global_namespace=self.settings.global_namespace,
            )
            self._local.extractor = extractor
        return extractor

    def get_paths(self, force: bool = False) -> list[Path]:
        """List source files under the source paths.

        The list is cached after the first call.

        Args:
            force: Rescan the file system instead of using the cache.

        Returns:
            Matching files, sorted within each source path.
        """
        if self._paths is not None and not force:
            return list(self._paths)

        extensions = set(self.settings.extensions)
        paths: list[Path] = []
        for source_path in self.source_paths:
            root = self.base_path / source_path.lstrip("/")
            if not root.is_dir():
                logger.warning(f"Source path does not exist: {root}")
                continue

            for file_path in sorted(root.rglob("*")):
                if not file_path.is_file() or file_path.suffix.lower() not in extensions:
                    continue
                if self._is_ignored(file_path):
                    continue
                paths.append(file_path)

        self._paths = paths
        return list(paths)

    def _is_ignored(self, file_path: Path) -> bool:
        if self._ignore_spec is None:
            return False
        try:
            relative = file_path.relative_to(self.base_path).as_posix()
        except ValueError:
            return False
        return self._ignore_spec.match_file(relative)

    def parse(self) -> None:
        """Parse every source file, then resolve inheritance and link references.

        Files that cannot be read, parsed or extracted are recorded in the
        failed paths and skipped.
        """
        started = time.perf_counter()
        paths = self.get_paths()
        logger.info(f"Found {len(paths)} source files to parse")

        self._namespaces = []
        self._failed_paths = []
        self.table = SymbolTable()
        self.engine = InheritanceEngine(self.table)
        self._inheritance_resolved = False

        if self.settings.max_workers > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
                outcomes = list(executor.map(self._parse_path, paths))
        else:
            outcomes = [self._parse_path(path) for path in paths]

        for outcome in outcomes:
            if isinstance(outcome, FailedPath):
                logger.warning(f"Failed to parse {outcome.path}: {outcome.error}")
                self._failed_paths.append(outcome)
                continue
            if outcome.namespace not in self._namespaces:
                self._namespaces.append(outcome.namespace)
            self.table.add(outcome)

        self.resolve_inheritance()

        logger.info(
            f"Parsed {len(self.table)} classes, {len(self._failed_paths)} failed paths"
        )
        logger.debug(f"Parse finished in {time.perf_counter() - started:.2f}s")

    def _parse_path(self, path: Path) -> ClassRecord | FailedPath:
        unit = SourceUnit(path=path)
        try:
            if path.stat().st_size > self.settings.max_file_size:
                unit.diagnostics.append("File exceeds the maximum file size.")
            else:
                unit.content = path.read_bytes()
                unit.content.decode(self.settings.encoding)
        except OSError as e:
            unit.diagnostics.append(f"Unable to read file: {e}")
        except UnicodeDecodeError as e:
            unit.diagnostics.append(f"Unable to decode file: {e}")
        if unit.diagnostics:
            return FailedPath.from_unit(unit)

        try:
            tree = self._tree_parser.parse_unit(path, unit.content)
            unit.parsed = True
            return self._extractor().extract(tree, unit.content, path)
        except (PhpSyntaxError, ExtractionError) as e:
            unit.diagnostics.append(e.message)
            if unit.parsed:
                logger.debug(f"{path} parsed but no declaration could be extracted")
            return FailedPath.from_unit(unit)

    def resolve_inheritance(self) -> None:
        """Run the inheritance and context passes once per parse."""
        if self._inheritance_resolved:
            return
        self.engine.resolve_inheritance()
        self.engine.link_references()
        self._inheritance_resolved = True

    def get_namespaces(self) -> list[str]:
        """Get every namespace encountered, in parse order."""
        return list(self._namespaces)

    def get_classes(self) -> SymbolTable:
        """Get the symbol table of all parsed classes."""
        return self.table

    def get_class(self, class_name: str) -> ClassRecord | None:
        """Get a single parsed class by its fully-qualified name."""
        return self.table.get(class_name.lstrip("\\"))

    def get_failed_paths(self) -> list[FailedPath]:
        """Get every file that failed to parse, with the reason."""
        return list(self._failed_paths)

    def get_class_map(self) -> dict[str, Any]:
        """Build a nested map of namespace segments to class names.

        Every level is sorted by key. Leaves hold fully-qualified class names.

        Returns:
            Nested class map.
        """
        class_map: dict[str, Any] = {}

        for namespace in self._namespaces:
            if namespace == self.settings.global_namespace:
                continue
            node = class_map
            for segment in namespace.split("\\"):
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child

        for class_name in self.table:
            segments = class_name.split("\\")
            node = class_map
            for segment in segments[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child
            if not isinstance(node.get(segments[-1]), dict):
                node[segments[-1]] = class_name

        return _sort_recursive(class_map)


def _sort_recursive(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _sort_recursive(value[key]) for key in sorted(value)}
    return value


def parse_api(
    base_path: Path | str,
    source_paths: list[str] | str | None = None,
    ignore_paths: list[str] | str | None = None,
    settings: ParserSettings | None = None,
) -> ApiParser:
    """Convenience function to parse a source tree.

    Args:
        base_path: Directory that source and ignore paths are relative to.
        source_paths: Sub-paths to scan recursively.
        ignore_paths: Gitignore-style ignore patterns.
        settings: Parser settings.

    Returns:
        Parser holding the finished results.
    """
    parser = ApiParser(base_path, source_paths, ignore_paths, settings)
    parser.parse()
    return parser
