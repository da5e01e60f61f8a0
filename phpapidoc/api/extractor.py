"""Declaration extraction from parsed PHP units."""

import logging
from pathlib import Path
from typing import Any

from tree_sitter import Tree

from phpapidoc.core.exceptions import ExtractionError

from .base import doc_comment, find_all, node_end_line, node_line, node_text, walk
from .docblock import DocBlockParser
from .events import EventScanner
from .models import (
    AliasTable,
    ClassRecord,
    ClassReference,
    ConstantDef,
    DeclarationKind,
    DocBlock,
    MethodDef,
    ParamDef,
    PropertyDef,
    ReturnDef,
    ScalarType,
    TypeRef,
    UseAlias,
    Visibility,
    mixed_type,
)
from .resolver import (
    code_type,
    join_namespace,
    qualify_code_name,
    resolve_name,
    short_name,
)
from .values import ConstExprEvaluator, php_type_name, to_json

logger = logging.getLogger(__name__)

GLOBAL_NAMESPACE = "__GLOBAL__"

DECLARATION_TYPES = {
    "class_declaration": DeclarationKind.CLASS,
    "interface_declaration": DeclarationKind.INTERFACE,
    "trait_declaration": DeclarationKind.TRAIT,
}

_NAME_TYPES = ("name", "qualified_name", "relative_name")
_LITERAL_TYPES = {
    "array_creation_expression": "array",
    "string": "string",
    "encapsed_string": "string",
    "heredoc": "string",
    "nowdoc": "string",
}


class _UnitContext:
    """Per-unit state shared by the extraction helpers."""

    def __init__(self, content: bytes, path: str, namespace: str, aliases: AliasTable) -> None:
        self.content = content
        self.path = path
        self.namespace = namespace
        self.aliases = aliases
        self.evaluator = ConstExprEvaluator(content, resolve_class=self.resolve_code_name)

    def text(self, node: Any) -> str:
        """Return the source text of a node."""
        return node_text(self.content, node)

    def resolve_code_name(self, written: str) -> str:
        """Resolve a name written in code to its fully-qualified form."""
        qualified = qualify_code_name(written, self.namespace, self.aliases)
        return resolve_name(qualified, self.namespace, self.aliases)

    def reference(self, written: str) -> ClassReference:
        """Build an unlinked class reference for a name written in code."""
        resolved = self.resolve_code_name(written)
        return ClassReference(name=short_name(resolved), class_name=resolved)


class DeclarationExtractor:
    """Extract the single class-like declaration of a parsed PHP unit.

    Builds a :class:`ClassRecord` with resolved names, parsed doc blocks,
    folded constant values and the events fired inside its methods.
    """

    def __init__(
        self,
        doc_parser: DocBlockParser | None = None,
        global_namespace: str = GLOBAL_NAMESPACE,
    ) -> None:
        """Initialize the extractor.

        Args:
            doc_parser: Doc-comment parser, a default one is created if omitted.
            global_namespace: Namespace recorded for units without a namespace.
        """
        self.doc_parser = doc_parser or DocBlockParser()
        self.event_scanner = EventScanner(self.doc_parser)
        self.global_namespace = global_namespace

    def extract(self, tree: Tree, content: bytes, path: Path | str) -> ClassRecord:
        """Extract the declaration of one unit.

        Args:
            tree: Parsed syntax tree.
            content: Source of the unit.
            path: Path of the unit.

        Returns:
            Class record for the unit's declaration.

        Raises:
            ExtractionError: If the unit has no declaration or more than one.
        """
        root = tree.root_node
        path_str = str(path)

        declarations = find_all(root, *DECLARATION_TYPES)
        if not declarations:
            raise ExtractionError(
                "No object definition found.", ExtractionError.NO_DECLARATION, path=path_str
            )
        if len(declarations) > 1:
            raise ExtractionError(
                "More than one object definition exists in this path.",
                ExtractionError.AMBIGUOUS,
                path=path_str,
                details={"declarations": len(declarations)},
            )

        namespace = self.extract_namespace(root, content)
        aliases = self.extract_aliases(root, content)
        context = _UnitContext(content, path_str, namespace, aliases)

        return self._extract_declaration(declarations[0], context)

    def extract_namespace(self, root: Any, content: bytes) -> str:
        """Return the unit's namespace, empty for the global namespace."""
        for node in find_all(root, "namespace_definition"):
            name = node.child_by_field_name("name")
            if name is None:
                name = next((c for c in node.named_children if c.type == "namespace_name"), None)
            if name is not None:
                return node_text(content, name).strip().lstrip("\\")
            return ""
        return ""

    def extract_aliases(self, root: Any, content: bytes) -> AliasTable:
        """Build the import table from single and grouped ``use`` statements.

        Args:
            root: Root node of the unit.
            content: Source of the unit.

        Returns:
            Import entries keyed by alias.
        """
        aliases: AliasTable = {}

        for declaration in find_all(root, "namespace_use_declaration"):
            if self._use_kind(declaration, content) in ("function", "const"):
                continue

            prefix = ""
            group = next(
                (c for c in declaration.named_children if c.type == "namespace_use_group"), None
            )
            if group is not None:
                prefix_node = next(
                    (c for c in declaration.named_children if c.type in ("namespace_name", *_NAME_TYPES)), None
                )
                if prefix_node is not None:
                    prefix = node_text(content, prefix_node).strip().strip("\\")
                clauses = [
                    c
                    for c in group.named_children
                    if c.type in ("namespace_use_clause", "namespace_use_group_clause")
                ]
            else:
                clauses = [c for c in declaration.named_children if c.type == "namespace_use_clause"]

            for clause in clauses:
                if self._use_kind(clause, content) in ("function", "const"):
                    continue
                entry = self._use_clause(clause, content, prefix)
                if entry is not None:
                    aliases[entry.alias] = entry

        return aliases

    def _use_kind(self, node: Any, content: bytes) -> str | None:
        """Return ``function`` or ``const`` for non-class imports, otherwise None."""
        kind = node.child_by_field_name("type")
        if kind is not None:
            return node_text(content, kind).lower()
        for child in node.children:
            if not child.is_named and child.type in ("function", "const"):
                return child.type
        return None

    def _use_clause(self, clause: Any, content: bytes, prefix: str) -> UseAlias | None:
        """Build the import entry of one ``use`` clause.

        Args:
            clause: Clause node, single or inside a group.
            content: Source of the unit.
            prefix: Group prefix, empty for single imports.

        Returns:
            Import entry, or None if the clause names nothing.
        """
        name_node = next(
            (c for c in clause.named_children if c.type in (*_NAME_TYPES, "namespace_name")),
            None,
        )
        if name_node is None:
            return None

        written = node_text(content, name_node).strip().strip("\\")
        full = f"{prefix}\\{written}" if prefix else written
        fq_class = resolve_name("\\" + full, "")

        alias_node = clause.child_by_field_name("alias")
        if alias_node is None:
            aliasing = next(
                (c for c in clause.named_children if c.type == "namespace_aliasing_clause"), None
            )
            if aliasing is not None:
                alias_node = next((c for c in aliasing.named_children if c.type == "name"), None)

        alias = node_text(content, alias_node).strip() if alias_node is not None else short_name(fq_class)
        return UseAlias(class_name=fq_class, name=written, alias=alias)

    def _extract_declaration(self, node: Any, context: _UnitContext) -> ClassRecord:
        """Build the class record of a declaration node.

        Args:
            node: Class, interface or trait declaration node.
            context: Unit state.

        Returns:
            Record with its heritage, members and events.
        """
        kind = DECLARATION_TYPES[node.type]
        name_node = node.child_by_field_name("name")
        name = context.text(name_node) if name_node is not None else ""
        body = node.child_by_field_name("body")

        record = ClassRecord(
            name=name,
            class_name=join_namespace(context.namespace, name),
            kind=kind,
            path=context.path,
            namespace=context.namespace or self.global_namespace,
            uses=context.aliases,
            docs=self._docs(node, context),
        )

        if kind == DeclarationKind.CLASS:
            record.final = self._has_modifier(node, "final")
            record.abstract = self._has_modifier(node, "abstract")
            base_clause = self._child_of_type(node, "base_clause")
            if base_clause is not None:
                parents = [c for c in base_clause.named_children if c.type in _NAME_TYPES]
                if parents:
                    record.extends = context.reference(context.text(parents[0]))
            interfaces = self._child_of_type(node, "class_interface_clause")
            if interfaces is not None:
                record.implements = [
                    context.reference(context.text(c))
                    for c in interfaces.named_children
                    if c.type in _NAME_TYPES
                ]

        if body is not None:
            if kind != DeclarationKind.INTERFACE:
                record.traits = self._traits(body, context)
            self._extract_members(body, record, context)
            if kind != DeclarationKind.INTERFACE:
                record.events = self.event_scanner.scan(
                    body, context.content, context.namespace, context.aliases
                )

        logger.debug(
            f"Extracted {record.kind.value} {record.class_name}: "
            f"{len(record.constants)} constants, {len(record.properties)} properties, "
            f"{len(record.methods)} methods, {len(record.events)} events"
        )
        return record

    def _child_of_type(self, node: Any, node_type: str) -> Any | None:
        """Return the first direct child of a type."""
        return next((c for c in node.children if c.type == node_type), None)

    def _visibility(self, node: Any, context: _UnitContext) -> Visibility:
        """Return the declared visibility, public when none is written."""
        for child in node.children:
            if child.type == "visibility_modifier":
                return Visibility(context.text(child).lower())
        return Visibility.PUBLIC

    def _has_modifier(self, node: Any, modifier: str) -> bool:
        """Check for a modifier keyword such as ``static`` or ``final``."""
        return any(child.type == f"{modifier}_modifier" for child in node.children)

    def _docs(self, node: Any, context: _UnitContext) -> DocBlock | None:
        """Parse the doc comment attached to a node, if any."""
        comment = doc_comment(node, context.content)
        if comment is None:
            return None
        return self.doc_parser.parse(context.text(comment), context.namespace, context.aliases)

    def _traits(self, body: Any, context: _UnitContext) -> list[ClassReference]:
        """Collect the traits used in a declaration body, in written order."""
        traits: list[ClassReference] = []
        for use in body.named_children:
            if use.type != "use_declaration":
                continue
            for child in use.named_children:
                if child.type in _NAME_TYPES:
                    traits.append(context.reference(context.text(child)))
        return traits

    def _extract_members(self, body: Any, record: ClassRecord, context: _UnitContext) -> None:
        """Append the constants, properties and methods of a body to a record.

        Args:
            body: Declaration body node.
            record: Record being built.
            context: Unit state.
        """
        for member in body.named_children:
            if member.type == "const_declaration":
                record.constants.extend(self._constants(member, context))
            elif member.type == "property_declaration" and record.kind != DeclarationKind.INTERFACE:
                record.properties.extend(self._properties(member, context))
            elif member.type == "method_declaration":
                method = self._method(member, context)
                record.methods.append(method)
                if method.name.lower() == "__construct":
                    record.properties.extend(self._promoted_properties(member, method, context))

    # Types

    def _type_names(self, node: Any, context: _UnitContext) -> list[str]:
        """Flatten a type hint node into its member names.

        Args:
            node: Type hint node.
            context: Unit state.

        Returns:
            Names in written order, with ``null`` appended for ``?T``.
        """
        if node.type == "optional_type":
            names: list[str] = []
            for child in node.named_children:
                names.extend(self._type_names(child, context))
            return [*names, "null"]
        if node.type in ("union_type", "type_list"):
            names = []
            for child in node.named_children:
                names.extend(self._type_names(child, context))
            return names
        if node.type == "named_type" and node.named_children:
            return [context.text(node.named_children[0]).strip()]
        return [context.text(node).strip()]

    def _declared_type(self, node: Any, field: str, context: _UnitContext) -> TypeRef | None:
        """Return the resolved type hint stored under a field, if declared."""
        type_node = node.child_by_field_name(field)
        if type_node is None:
            return None
        names = self._type_names(type_node, context)
        if not names:
            return None
        return code_type(names, context.namespace, context.aliases)

    def _value(self, node: Any | None, context: _UnitContext) -> tuple[str | None, TypeRef | None]:
        """Fold a default or constant value into JSON text and a value type."""
        if node is None:
            return None, None

        result = context.evaluator.evaluate(node)
        literal_type = _LITERAL_TYPES.get(node.type)
        if not result.ok:
            return None, ScalarType(type=literal_type) if literal_type else None

        value = result.value
        if literal_type:
            return to_json(value), ScalarType(type=literal_type)
        if value is None:
            return to_json(None), None
        return to_json(value), ScalarType(type=php_type_name(value))

    # Members

    def _constants(self, node: Any, context: _UnitContext) -> list[ConstantDef]:
        """Build the constants of one ``const`` declaration.

        Values that cannot be folded are recorded as None with a mixed type.

        Args:
            node: Constant declaration node.
            context: Unit state.

        Returns:
            One definition per element, sharing the declaration's doc block.
        """
        docs = self._docs(node, context)
        visibility = self._visibility(node, context)
        constants = []
        for element in node.named_children:
            if element.type != "const_element":
                continue
            parts = element.named_children
            if not parts:
                continue
            value_node = parts[-1] if len(parts) > 1 else None
            result = context.evaluator.evaluate(value_node) if value_node is not None else None

            if result is not None and result.ok:
                value = to_json(result.value)
                type_ref: TypeRef = ScalarType(type=php_type_name(result.value))
            else:
                value, type_ref = None, mixed_type()

            constants.append(
                ConstantDef(
                    name=context.text(parts[0]),
                    visibility=visibility,
                    type=type_ref,
                    value=value,
                    docs=docs.model_copy(deep=True) if docs else None,
                    line=node_line(node),
                )
            )
        return constants

    def _properties(self, node: Any, context: _UnitContext) -> list[PropertyDef]:
        """Build the properties of one property declaration.

        The type is the declared hint, else the ``@var`` type, else the type
        of the default value.

        Args:
            node: Property declaration node.
            context: Unit state.

        Returns:
            One definition per element.
        """
        docs = self._docs(node, context)
        visibility = self._visibility(node, context)
        static = self._has_modifier(node, "static")
        declared = self._declared_type(node, "type", context)
        documented = docs.var.type if docs is not None and docs.var is not None else None

        properties = []
        for element in node.named_children:
            if element.type != "property_element":
                continue
            name_node = element.child_by_field_name("name") or next(
                (c for c in element.named_children if c.type == "variable_name"), None
            )
            if name_node is None:
                continue

            default_node = element.child_by_field_name("default_value")
            if default_node is None:
                initializer = next(
                    (c for c in element.named_children if c.type == "property_initializer"), None
                )
                if initializer is not None and initializer.named_children:
                    default_node = initializer.named_children[0]
            default, value_type = self._value(default_node, context)

            properties.append(
                PropertyDef(
                    name=context.text(name_node).lstrip("$"),
                    visibility=visibility,
                    static=static,
                    type=self._first_type(declared, documented, value_type),
                    default=default,
                    docs=docs.model_copy(deep=True) if docs else None,
                    line=node_line(node),
                )
            )
        return properties

    def _first_type(self, *candidates: TypeRef | None) -> TypeRef:
        """Copy the first known type, falling back to mixed."""
        for candidate in candidates:
            if candidate is not None:
                return candidate.model_copy(deep=True)
        return mixed_type()

    def _method(self, node: Any, context: _UnitContext) -> MethodDef:
        """Build a method definition.

        Args:
            node: Method declaration node.
            context: Unit state.

        Returns:
            Method with its modifiers, parameters and return type.
        """
        docs = self._docs(node, context)
        name_node = node.child_by_field_name("name")

        declared_return = self._declared_type(node, "return_type", context)
        documented_return = docs.returns if docs is not None else None
        returns = ReturnDef(
            type=self._first_type(
                declared_return, documented_return.type if documented_return else None
            ),
            summary=documented_return.summary if documented_return else None,
        )

        return MethodDef(
            name=context.text(name_node) if name_node is not None else "",
            visibility=self._visibility(node, context),
            static=self._has_modifier(node, "static"),
            final=self._has_modifier(node, "final"),
            abstract=self._has_modifier(node, "abstract"),
            docs=docs,
            returns=returns,
            params=self._params(node, docs, context),
            lines=[node_line(node), node_end_line(node)],
        )

    def _parameter_nodes(self, method: Any) -> list[Any]:
        """Return the parameter nodes of a method, in order."""
        parameters = method.child_by_field_name("parameters")
        if parameters is None:
            return []
        return [
            c
            for c in parameters.named_children
            if c.type in ("simple_parameter", "variadic_parameter", "property_promotion_parameter")
        ]

    def _parameter_name(self, node: Any, context: _UnitContext) -> str:
        """Return a parameter name without ``$`` or ``&``."""
        name_node = node.child_by_field_name("name")
        if name_node is None:
            name_node = next(
                (c for c in walk(node) if c.type == "variable_name"), None
            )
        return context.text(name_node).lstrip("&").lstrip("$") if name_node is not None else ""

    def _params(self, node: Any, docs: DocBlock | None, context: _UnitContext) -> list[ParamDef]:
        """Build the parameters of a method.

        Args:
            node: Method declaration node.
            docs: Method doc block, used for ``@param`` types and summaries.
            context: Unit state.

        Returns:
            Parameters in declaration order.
        """
        params = []
        for parameter in self._parameter_nodes(node):
            name = self._parameter_name(parameter, context)
            declared = self._declared_type(parameter, "type", context)
            default, value_type = self._value(parameter.child_by_field_name("default_value"), context)
            tag = docs.params.get(name) if docs is not None else None

            params.append(
                ParamDef(
                    name=name,
                    type=self._first_type(declared, tag.type if tag else None, value_type),
                    summary=tag.summary if tag else None,
                    default=default,
                )
            )
        return params

    def _promoted_properties(
        self, node: Any, method: MethodDef, context: _UnitContext
    ) -> list[PropertyDef]:
        """Build the properties declared through constructor promotion.

        Args:
            node: Constructor declaration node.
            method: Constructor definition, whose parameters carry the types.
            context: Unit state.

        Returns:
            One property per promoted parameter.
        """
        promoted = []
        params = {param.name: param for param in method.params}
        for parameter in self._parameter_nodes(node):
            if parameter.type != "property_promotion_parameter":
                continue
            name = self._parameter_name(parameter, context)
            param = params.get(name)
            if param is None:
                continue
            promoted.append(
                PropertyDef(
                    name=name,
                    visibility=self._visibility(parameter, context),
                    static=False,
                    type=param.type.model_copy(deep=True),
                    default=param.default,
                    line=node_line(parameter),
                )
            )
        return promoted
