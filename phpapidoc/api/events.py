"""Discovery of documented event triggers.

Two flavours live here. :class:`EventScanner` works on parsed trees and
finds call sites whose doc comment carries an ``@event`` tag. The
``get_*`` helpers work on raw file text with regular expressions and build
a flat event map for a whole directory, without parsing PHP at all.
"""

import logging
import re
from pathlib import Path
from typing import Any

from .base import doc_comment, node_end_line, node_line, node_text, walk
from .docblock import DocBlockParser
from .models import AliasTable, EventRecord, ParamDef

logger = logging.getLogger(__name__)

CALL_TYPES = (
    "member_call_expression",
    "nullsafe_member_call_expression",
    "scoped_call_expression",
    "function_call_expression",
)

EVENT_DOC_RE = re.compile(r"^( +\* |/\*\* )@event", re.MULTILINE)
EVENT_NAME_RE = re.compile(r"^( +\* |/\*\* )@event +(\S+)", re.MULTILINE)
_LEADING_EVENT_RE = re.compile(r"^/\*\* @event.*?$", re.MULTILINE)
_INNER_EVENT_RE = re.compile(r"^( +\* )@event.*?[\n\r]+( +\* *[\n\r]+)?", re.MULTILINE)


def reformat_comment(text: str) -> str:
    """Normalise a comment's indentation so continuation lines start with `` *``."""
    lines = text.strip().splitlines()
    if len(lines) <= 1:
        return text.strip()
    rest = [" " + line.lstrip() if line.lstrip().startswith("*") else line for line in lines[1:]]
    return "\n".join([lines[0].strip(), *rest])


def is_event_doc_block(text: str) -> bool:
    """Check whether a reformatted doc comment carries an ``@event`` tag."""
    return EVENT_DOC_RE.search(text) is not None


def split_event_doc_block(text: str) -> tuple[str, str] | None:
    """Extract the event name and strip the ``@event`` line.

    Args:
        text: Reformatted doc comment.

    Returns:
        Tuple of event name and the remaining doc comment, or None.
    """
    match = EVENT_NAME_RE.search(text)
    if match is None:
        return None

    if _LEADING_EVENT_RE.search(text):
        stripped = _LEADING_EVENT_RE.sub("/**", text)
    else:
        stripped = _INNER_EVENT_RE.sub("", text)
    return match.group(2), stripped


class EventScanner:
    """Find call sites annotated with ``@event`` doc comments."""

    def __init__(self, doc_parser: DocBlockParser | None = None) -> None:
        self.doc_parser = doc_parser or DocBlockParser()

    def scan(
        self,
        root: Any,
        content: bytes,
        namespace: str,
        aliases: AliasTable | None = None,
    ) -> list[EventRecord]:
        """Scan a declaration for documented event triggers.

        Args:
            root: Node to search, normally the class-like declaration.
            content: Source of the unit.
            namespace: Namespace used to resolve documented types.
            aliases: Import table used to resolve documented types.

        Returns:
            Events in source order.
        """
        events: list[EventRecord] = []
        seen_comments: set[int] = set()

        for node in walk(root):
            if node.type not in CALL_TYPES:
                continue

            anchor = node
            while anchor.parent is not None and anchor.parent.start_byte == anchor.start_byte:
                anchor = anchor.parent
            comment = doc_comment(anchor, content)
            if comment is None or comment.start_byte in seen_comments:
                continue

            text = reformat_comment(node_text(content, comment))
            if not is_event_doc_block(text):
                continue

            method = self._enclosing_method(node, content)
            if method is None:
                logger.debug(f"Skipping event outside a method on line {node_line(node)}")
                continue

            split = split_event_doc_block(text)
            if split is None:
                continue
            name, stripped = split
            seen_comments.add(comment.start_byte)

            docs = self.doc_parser.parse(stripped, namespace, aliases)
            params = [
                ParamDef(name=param_name, type=tag.type, summary=tag.summary)
                for param_name, tag in (docs.params.items() if docs else [])
            ]
            events.append(
                EventRecord(
                    name=name,
                    method=method,
                    call=self._call_name(node, content),
                    params=params,
                    docs=docs,
                    lines=[node_line(comment), node_end_line(comment)],
                )
            )

        return events

    def _enclosing_method(self, node: Any, content: bytes) -> str | None:
        current = node.parent
        while current is not None:
            if current.type == "method_declaration":
                name = current.child_by_field_name("name")
                return node_text(content, name) if name is not None else None
            current = current.parent
        return None

    def _call_name(self, node: Any, content: bytes) -> str:
        if node.type == "function_call_expression":
            function = node.child_by_field_name("function")
            return node_text(content, function) if function is not None else ""
        name = node.child_by_field_name("name")
        if name is None:
            return ""
        if node.type == "scoped_call_expression":
            scope = node.child_by_field_name("scope")
            if scope is not None:
                return f"{node_text(content, scope)}::{node_text(content, name)}"
        return node_text(content, name)


# Regex helpers over raw file text

_FILE_EVENT_RE = re.compile(r" +?/\*\*\s+?\* @event.+?\*/", re.DOTALL)
_EVENT_TAG_RE = re.compile(r"@event (.+?)$", re.MULTILINE)
_SINCE_TAG_RE = re.compile(r"@since (.+?)$", re.MULTILINE)
_PARAM_TAG_RE = re.compile(r"@param ([^@]+)", re.DOTALL)
_PARAM_PREFIX_RE = re.compile(r"[\t ]+\*(?:\s|/)")
_DESCRIPTION_FILTERS = (
    re.compile(r"^\s*?/\*\*\s*?$", re.MULTILINE),
    re.compile(r"\s*\*/$", re.DOTALL),
    re.compile(r"@(event|since) .+$", re.MULTILINE),
    re.compile(r"@param [^@]+", re.DOTALL),
)
_BLANK_STAR_RE = re.compile(r"\s+?\*\s*?$", re.MULTILINE)
_STAR_PREFIX_RE = re.compile(r"^ +?\* ", re.MULTILINE)
_NOTE_RE = re.compile(r"(> \*\*Note)")


def _normalise_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def get_event_tag(doc: str) -> str | None:
    """Return the event name of a raw event doc comment."""
    match = _EVENT_TAG_RE.search(_normalise_newlines(doc))
    return match.group(1).strip() if match else None


def get_since_tag(doc: str) -> str | None:
    """Return the ``@since`` text of a raw event doc comment."""
    match = _SINCE_TAG_RE.search(_normalise_newlines(doc))
    return match.group(1).strip() if match else None


def get_param_tags(doc: str) -> list[str]:
    """Return each ``@param`` tag's text with comment prefixes removed."""
    return [
        _PARAM_PREFIX_RE.sub("", match).strip()
        for match in _PARAM_TAG_RE.findall(_normalise_newlines(doc))
    ]


def get_event_description(doc: str) -> str:
    """Return the free-text description of a raw event doc comment.

    Comment delimiters, ``@event``/``@since`` lines and ``@param`` blocks
    are removed, as are the leading stars. Markdown notes are separated so
    each renders as its own block.
    """
    result = _normalise_newlines(doc)
    for pattern in _DESCRIPTION_FILTERS:
        result = pattern.sub("", result)
    result = _BLANK_STAR_RE.sub("\n", result)
    result = _STAR_PREFIX_RE.sub("", result)
    result = _NOTE_RE.sub("\n\n<span></span>\n\n\\1", result)
    return result.strip()


def _dot_set(target: dict[str, Any], dotted: str, value: Any) -> None:
    keys = dotted.split(".")
    for key in keys[:-1]:
        existing = target.get(key)
        if not isinstance(existing, dict):
            existing = {}
            target[key] = existing
        target = existing
    target[keys[-1]] = value


def get_file_events(
    events: dict[str, Any],
    file_path: Path,
    relative_path: str,
    prefix: str = "",
    source_url: str = "",
) -> None:
    """Add the events documented in one file to an event map.

    Args:
        events: Event map updated in place, nested by dotted event name.
        file_path: File to read.
        relative_path: Path of the file relative to the scanned directory.
        prefix: Path prefix prepended before building the trigger name.
        source_url: Base URL joined with the relative path for ``class_path``.
    """
    data = _normalise_newlines(file_path.read_text(encoding="utf-8", errors="replace"))

    segments = f"{prefix}{relative_path}".rsplit(".", 1)[0].split("/")
    triggered_in = "\\".join(segment[:1].upper() + segment[1:] for segment in segments if segment)

    for match in _FILE_EVENT_RE.finditer(data):
        doc = match.group(0)
        event_name = get_event_tag(doc)
        if not event_name:
            continue

        start_line = data.count("\n", 0, match.start()) + 1
        end_line = start_line + doc.count("\n")
        event: dict[str, Any] = {
            "triggered_in": triggered_in,
            "class_path": f"{source_url}{relative_path}#L{start_line},L{end_line}",
            "event_name": event_name,
            "description": get_event_description(doc),
        }

        params = get_param_tags(doc)
        if params:
            event["params"] = params
        since = get_since_tag(doc)
        if since:
            event["since"] = since

        _dot_set(events, event_name, event)


def get_path_events(
    path: Path | str,
    prefix: str = "",
    source_url: str = "",
    extensions: tuple[str, ...] = (".php",),
) -> dict[str, Any]:
    """Build an event map for every source file under a directory.

    Args:
        path: Directory to scan recursively.
        prefix: Path prefix prepended before building trigger names.
        source_url: Base URL for ``class_path`` links.
        extensions: File extensions to read.

    Returns:
        Event map nested by dotted event name.
    """
    root = Path(path)
    events: dict[str, Any] = {}
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file() or file_path.suffix.lower() not in extensions:
            continue
        get_file_events(
            events,
            file_path,
            file_path.relative_to(root).as_posix(),
            prefix=prefix,
            source_url=source_url,
        )
    return events
