"""Pytest configuration and shared fixtures."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from phpapidoc.api.base import TreeSitterParser
from phpapidoc.api.docblock import DocBlockParser
from phpapidoc.api.extractor import DeclarationExtractor
from phpapidoc.api.models import ClassRecord
from phpapidoc.core.config.settings import ParserSettings

FIXTURES_PATH = Path(__file__).parent / "fixtures"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory that is cleaned up after the test.

    Yields:
        Path to the temporary directory.
    """
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fixtures_path() -> Path:
    """Path to the PHP fixture tree."""
    return FIXTURES_PATH


@pytest.fixture
def parser_settings() -> ParserSettings:
    """Parser settings with defaults, independent of the YAML config."""
    return ParserSettings()


@pytest.fixture
def doc_parser() -> DocBlockParser:
    """Create a doc-comment parser."""
    return DocBlockParser()


@pytest.fixture
def extract(doc_parser: DocBlockParser) -> Callable[[str], ClassRecord]:
    """Return a helper that parses PHP source and extracts its declaration.

    Returns:
        Function taking PHP source text and returning the class record.
    """
    tree_parser = TreeSitterParser()
    extractor = DeclarationExtractor(doc_parser)

    def _extract(code: str, path: str = "Test.php") -> ClassRecord:
        content = code.encode("utf-8")
        tree = tree_parser.parse_unit(path, content)
        return extractor.extract(tree, content, path)

    return _extract


@pytest.fixture
def write_php() -> Callable[[Path, str, str], Path]:
    """Return a helper that writes a PHP file below a root directory."""

    def _write(root: Path, relative: str, code: str) -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(code, encoding="utf-8")
        return path

    return _write
