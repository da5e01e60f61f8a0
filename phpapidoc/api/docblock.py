"""Doc-comment parsing into typed documentation records."""

import logging
import re
from dataclasses import dataclass, field

import markdown

from .models import (
    AliasTable,
    Author,
    DocBlock,
    ParamTag,
    ReturnTag,
    ThrowsTag,
    TypeRef,
    VarTag,
    mixed_type,
)
from .resolver import get_doc_type

logger = logging.getLogger(__name__)

INHERIT_DOC_TOKEN = "{@inheritdoc}"
INHERIT_DOC_TAG = "inheritdoc"

_TAG_RE = re.compile(r"^@([\w\-\\:]+)(?:[ \t]+(.*))?$", re.DOTALL)
_VERSION_RE = re.compile(r"^(?:\d\S*|[^\s:]+:\s*\$[^$]+\$)")
_AUTHOR_RE = re.compile(r"^([^<]*?)\s*(?:<([^>]*)>)?\s*$")
_VARIABLE_RE = re.compile(r"^(?:&\s*)?(?:\.\.\.\s*)?\$([A-Za-z_\x80-\uffff][\w\x80-\uffff]*)")


@dataclass
class RawTag:
    """A tag as written: name plus the text that follows it."""

    name: str
    body: str = ""

    def render(self) -> str:
        return f"@{self.name} {self.body}".strip()


@dataclass
class RawDocComment:
    """A doc comment split into free text and tags."""

    summary: str = ""
    description: str = ""
    tags: list[RawTag] = field(default_factory=list)

    def tags_named(self, name: str) -> list[RawTag]:
        return [tag for tag in self.tags if tag.name.lower() == name]


def strip_comment_markers(raw: str) -> list[str]:
    """Return the lines of a doc comment without delimiters or leading stars."""
    text = raw.strip()
    if text.startswith("/**"):
        text = text[3:]
    elif text.startswith("/*"):
        text = text[2:]
    if text.endswith("*/"):
        text = text[:-2]

    lines = []
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("*"):
            line = line[1:]
            if line.startswith(" "):
                line = line[1:]
        lines.append(line.rstrip())
    return lines


def split_doc_comment(raw: str) -> RawDocComment:
    """Split a doc comment into summary, description and tags.

    The summary ends at the first blank line or at the first line ending in
    a period. Tags start at the first line beginning with ``@`` and continue
    over following lines until the next tag.
    """
    lines = strip_comment_markers(raw)

    text_lines: list[str] = []
    tags: list[RawTag] = []
    in_fence = False
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("```"):
            in_fence = not in_fence
        if not in_fence and stripped.startswith("@"):
            match = _TAG_RE.match(stripped)
            if match:
                tags.append(RawTag(name=match.group(1), body=(match.group(2) or "").strip()))
                continue
        if tags:
            tags[-1].body = f"{tags[-1].body}\n{line}" if tags[-1].body else line.strip()
        else:
            text_lines.append(line)

    for tag in tags:
        tag.body = tag.body.strip()

    while text_lines and not text_lines[0].strip():
        text_lines.pop(0)

    summary_lines: list[str] = []
    index = 0
    while index < len(text_lines):
        line = text_lines[index]
        if not line.strip():
            break
        summary_lines.append(line.strip())
        index += 1
        if line.rstrip().endswith("."):
            break

    description = "\n".join(text_lines[index:]).strip()
    return RawDocComment(summary=" ".join(summary_lines).strip(), description=description, tags=tags)


def split_type(body: str) -> tuple[str, str]:
    """Split a tag body into its leading type expression and the remainder.

    Whitespace inside brackets belongs to the type, so ``array<int, string>``
    stays whole.
    """
    depth = 0
    for index, char in enumerate(body):
        if char in "<([{":
            depth += 1
        elif char in ">)]}":
            depth -= 1
        elif char.isspace() and depth <= 0:
            return body[:index], body[index:].strip()
    return body, ""


class DocBlockParser:
    """Parse doc comments into :class:`DocBlock` records.

    Summaries, bodies and tag descriptions are rendered from Markdown to
    HTML. Malformed tags never raise: their type falls back to ``mixed`` and
    their raw text becomes the summary.
    """

    def __init__(self, markdown_extensions: list[str] | None = None) -> None:
        """Initialize the parser.

        Args:
            markdown_extensions: Python-Markdown extensions used for rendering.
        """
        self._markdown = markdown.Markdown(
            extensions=markdown_extensions if markdown_extensions is not None else ["fenced_code", "tables"]
        )

    def render(self, text: str) -> str:
        """Render Markdown text to HTML."""
        if not text.strip():
            return ""
        html = self._markdown.convert(text)
        self._markdown.reset()
        return html

    def parse(
        self,
        raw: str | None,
        namespace: str,
        aliases: AliasTable | None = None,
    ) -> DocBlock | None:
        """Parse a raw doc comment.

        Args:
            raw: Comment text including its delimiters, or None.
            namespace: Namespace used to resolve documented types.
            aliases: Import table used to resolve documented types.

        Returns:
            Parsed doc block, or None when there is no comment.
        """
        if raw is None or not raw.strip():
            return None

        comment = split_doc_comment(raw)

        if comment.summary.lower() == INHERIT_DOC_TOKEN or comment.tags_named(INHERIT_DOC_TAG):
            return DocBlock.inherit_marker()

        docs = DocBlock(
            summary=self.render(comment.summary) or None,
            body=self.render(comment.description) or None,
            since=self._version(comment, "since"),
            deprecated=self._version(comment, "deprecated"),
        )

        for tag in comment.tags_named("author"):
            author = self._author(tag)
            if author is not None:
                docs.authors.append(author)

        var_tags = comment.tags_named("var")
        if var_tags:
            self._apply_var(docs, var_tags[0], namespace, aliases)

        for index, tag in enumerate(comment.tags_named("param")):
            name, param = self._param(tag, namespace, aliases)
            docs.params[name if name is not None else str(index)] = param

        for tag in comment.tags_named("throws"):
            type_ref, summary = self._typed_tag(tag, namespace, aliases)
            docs.throws.append(ThrowsTag(type=type_ref, summary=summary))

        return_tags = comment.tags_named("return")
        if return_tags:
            type_ref, summary = self._typed_tag(return_tags[0], namespace, aliases)
            docs.returns = ReturnTag(type=type_ref, summary=summary)

        return docs

    def _version(self, comment: RawDocComment, name: str) -> str | None:
        tags = comment.tags_named(name)
        if not tags:
            return None
        match = _VERSION_RE.match(tags[0].body)
        return match.group(0) if match else None

    def _author(self, tag: RawTag) -> Author | None:
        match = _AUTHOR_RE.match(tag.body)
        if not match or not match.group(1).strip():
            logger.debug(f"Skipping malformed @author tag: {tag.render()}")
            return None
        return Author(name=match.group(1).strip(), email=match.group(2) or None)

    def _apply_var(self, docs: DocBlock, tag: RawTag, namespace: str, aliases: AliasTable | None) -> None:
        expression, rest = split_type(tag.body)
        if not expression:
            docs.var = VarTag(type=mixed_type())
            return

        type_result = get_doc_type(expression, namespace, aliases)
        docs.var = VarTag(type=type_result.unwrap_or(mixed_type()))
        if not type_result.ok:
            logger.debug(f"Malformed @var tag '{tag.body}': {type_result.error}")
            docs.summary = tag.body
            return

        variable = _VARIABLE_RE.match(rest)
        description = rest[variable.end() :].strip() if variable else rest
        if not docs.summary and description:
            docs.summary = self.render(description) or None

    def _param(
        self, tag: RawTag, namespace: str, aliases: AliasTable | None
    ) -> tuple[str | None, ParamTag]:
        body = tag.body
        variable = _VARIABLE_RE.match(body)
        if variable:
            return variable.group(1), ParamTag(
                type=mixed_type(), summary=self.render(body[variable.end() :].strip()) or None
            )

        expression, rest = split_type(body)
        type_result = get_doc_type(expression, namespace, aliases) if expression else None
        variable = _VARIABLE_RE.match(rest)
        if type_result is None or not type_result.ok or variable is None:
            logger.debug(f"Malformed @param tag: {tag.render()}")
            return None, ParamTag(type=mixed_type(), summary=body or None)

        return variable.group(1), ParamTag(
            type=type_result.unwrap_or(mixed_type()),
            summary=self.render(rest[variable.end() :].strip()) or None,
        )

    def _typed_tag(
        self, tag: RawTag, namespace: str, aliases: AliasTable | None
    ) -> tuple[TypeRef, str | None]:
        expression, rest = split_type(tag.body)
        if not expression:
            return mixed_type(), None

        type_result = get_doc_type(expression, namespace, aliases)
        type_ref = type_result.unwrap_or(mixed_type())
        if not type_result.ok:
            logger.debug(f"Malformed @{tag.name} tag '{tag.body}': {type_result.error}")
            return type_ref, tag.body

        return type_ref, self.render(rest) or None
