"""PHP API documentation parsing.

This module parses a PHP source tree and produces one record per class,
interface or trait, with resolved names, parsed doc blocks, flattened
inheritance and the events each class fires.

Example usage:
    from phpapidoc.api import parse_api

    parser = parse_api("path/to/project", ["src"], ["src/vendor/"])
    mysql = parser.get_class("Docs\\Api\\Database\\Mysql")
    print(f"Methods: {len(mysql.methods)}")
    print(f"Failed paths: {len(parser.get_failed_paths())}")
"""

from .base import TreeSitterParser
from .docblock import DocBlockParser
from .events import EventScanner, get_path_events
from .extractor import DeclarationExtractor
from .inheritance import InheritanceEngine, sort_definitions
from .models import (
    ClassRecord,
    ClassReference,
    ConstantDef,
    DeclarationKind,
    DocBlock,
    EventRecord,
    FailedPath,
    MethodDef,
    ParamDef,
    PropertyDef,
    ReferenceType,
    ScalarType,
    UnionType,
    Visibility,
)
from .parser import ApiParser, parse_api
from .resolver import get_doc_type, resolve_name
from .symbols import SymbolTable

__all__ = [
    # Data models
    "ClassRecord",
    "ClassReference",
    "ConstantDef",
    "DeclarationKind",
    "DocBlock",
    "EventRecord",
    "FailedPath",
    "MethodDef",
    "ParamDef",
    "PropertyDef",
    "ReferenceType",
    "ScalarType",
    "UnionType",
    "Visibility",
    # Pipeline
    "ApiParser",
    "DeclarationExtractor",
    "DocBlockParser",
    "EventScanner",
    "InheritanceEngine",
    "SymbolTable",
    "TreeSitterParser",
    # Functions
    "get_doc_type",
    "get_path_events",
    "parse_api",
    "resolve_name",
    "sort_definitions",
]
