"""Inheritance flattening and reference linking over a symbol table."""

import logging
from typing import Iterator

from .models import (
    MEMBER_KINDS,
    AliasTable,
    ClassRecord,
    ClassReference,
    ConstantDef,
    DeclarationKind,
    DocBlock,
    InheritedFrom,
    Member,
    MethodDef,
    PropertyDef,
    ReferenceType,
    TypeRef,
    UnionType,
)
from .symbols import SymbolTable

logger = logging.getLogger(__name__)


def type_references(type_ref: TypeRef | None) -> Iterator[ClassReference]:
    """Yield the class references inside a type, union branches included."""
    if isinstance(type_ref, ReferenceType):
        yield type_ref.type
    elif isinstance(type_ref, UnionType):
        for branch in type_ref.types:
            if isinstance(branch, ReferenceType):
                yield branch.type


def doc_references(docs: DocBlock | None) -> Iterator[ClassReference]:
    """Yield the class references of every typed tag in a doc block."""
    if docs is None:
        return
    if docs.var is not None:
        yield from type_references(docs.var.type)
    for tag in docs.params.values():
        yield from type_references(tag.type)
    if docs.returns is not None:
        yield from type_references(docs.returns.type)
    for tag in docs.throws:
        yield from type_references(tag.type)


def member_references(member: Member) -> Iterator[ClassReference]:
    """Yield the class references of a member's types and documentation."""
    yield from doc_references(member.docs)
    if isinstance(member, (ConstantDef, PropertyDef)):
        yield from type_references(member.type)
    elif isinstance(member, MethodDef):
        yield from type_references(member.returns.type)
        for param in member.params:
            yield from type_references(param.type)


def merge_method_docs(method: MethodDef) -> None:
    """Fill a method's mixed types and empty summaries from its documentation."""
    docs = method.docs
    if docs is None or docs.inherit:
        return

    if docs.returns is not None:
        if method.returns.type.is_mixed and not docs.returns.type.is_mixed:
            method.returns.type = docs.returns.type.model_copy(deep=True)
        if not method.returns.summary and docs.returns.summary:
            method.returns.summary = docs.returns.summary

    for param in method.params:
        tag = docs.params.get(param.name)
        if tag is None:
            continue
        if param.type.is_mixed and not tag.type.is_mixed:
            param.type = tag.type.model_copy(deep=True)
        if not param.summary and tag.summary:
            param.summary = tag.summary


def _member_sort_key(member: Member) -> tuple[int, int, str]:
    """Sort key: own before inherited, then visibility rank, then name."""
    return (2 if member.is_inherited else 1, member.visibility.rank, member.name)


def sort_definitions(record: ClassRecord) -> None:
    """Order members by own before inherited, then visibility, then name.

    Traits are ordered by name when there is more than one.
    """
    if len(record.traits) > 1:
        record.traits.sort(key=lambda reference: reference.name)
    for kind in MEMBER_KINDS:
        record.members(kind).sort(key=_member_sort_key)


class InheritanceEngine:
    """Flatten ancestors into each record and link type references.

    Ancestors are merged in the order used traits, parent class, implemented
    interfaces, recursively. Only an ancestor's own members are copied, so
    the provenance of every inherited member names its declaring class.
    Members documented with ``@inheritDoc`` are tracked as pending requests
    and filled from the nearest documented ancestor.
    """

    def __init__(self, table: SymbolTable) -> None:
        """Initialize the engine.

        Args:
            table: Symbol table of the run, mutated in place.
        """
        self.table = table
        self._pending: dict[str, dict[str, list[str]]] = {}
        self._declared: dict[str, list[ClassReference]] = {}

    def pending_requests(self, class_name: str) -> dict[str, list[str]]:
        """Return the unresolved documentation requests of a record.

        Records without ancestors never have an entry and get an empty dict.
        """
        return {kind: list(names) for kind, names in self._pending.get(class_name, {}).items()}

    def resolve_inheritance(self) -> None:
        """Merge ancestors into every class and trait, then resolve docs."""
        records = self.table.records()
        for record in records:
            self._declared[record.class_name] = self._declared_ancestors(record)

        for record in records:
            if record.is_interface:
                continue

            requests = {
                kind: [m.name for m in record.members(kind) if m.requests_inherited_docs]
                for kind in MEMBER_KINDS
            }
            if not record.has_ancestors:
                continue

            self._pending[record.class_name] = requests
            visited = {record.class_name}
            for ancestor in self._ancestors(record):
                self._merge(record, ancestor, visited)

        self.second_pass_inherited_docs()

    def _declared_ancestors(self, record: ClassRecord) -> list[ClassReference]:
        """Return the written ancestors in merge order: traits, parent, interfaces."""
        if record.is_interface:
            return []
        parent = [record.extends] if record.extends is not None else []
        return [*record.traits, *parent, *record.implements]

    def _ancestors(self, record: ClassRecord) -> list[ClassRecord]:
        """Return the parsed records of a record's declared ancestors.

        Ancestors outside the symbol table are skipped.
        """
        references = self._declared.get(record.class_name, [])
        ancestors = []
        for reference in references:
            ancestor = self.table.resolve(reference)
            if ancestor is None:
                logger.debug(f"Ancestor {reference.class_name} of {record.class_name} not parsed")
                continue
            ancestors.append(ancestor)
        return ancestors

    def _merge(self, child: ClassRecord, ancestor: ClassRecord, visited: set[str]) -> None:
        """Copy an ancestor's own members into a child, then recurse upward.

        A parent class also contributes its traits, and its interfaces when
        the child is a class. Members the child already has are kept.

        Args:
            child: Record being flattened.
            ancestor: Ancestor to merge.
            visited: Class names already merged into the child.
        """
        if ancestor.class_name in visited:
            return
        visited.add(ancestor.class_name)

        if ancestor.kind == DeclarationKind.CLASS:
            self._extend_references(child.traits, ancestor.traits)
            if child.kind == DeclarationKind.CLASS:
                self._extend_references(child.implements, ancestor.implements)

        for kind in MEMBER_KINDS:
            members = child.members(kind)
            existing = {member.name for member in members}
            for member in ancestor.members(kind):
                if member.is_inherited or member.name in existing:
                    continue
                copy = member.model_copy(deep=True)
                copy.inherited = InheritedFrom(from_class=ancestor.class_name, from_name=ancestor.name)
                members.append(copy)
                existing.add(member.name)

            self._resolve_requests(child, ancestor, kind)

        for next_ancestor in self._ancestors(ancestor):
            self._merge(child, next_ancestor, visited)

    def _extend_references(self, target: list[ClassReference], source: list[ClassReference]) -> None:
        """Append copies of the references not already in the target."""
        known = {reference.class_name for reference in target}
        for reference in source:
            if reference.class_name not in known:
                target.append(reference.model_copy(deep=True))
                known.add(reference.class_name)

    def _resolve_requests(self, child: ClassRecord, ancestor: ClassRecord, kind: str) -> None:
        """Fill pending ``@inheritDoc`` requests from an ancestor's own members.

        Args:
            child: Record holding the requests.
            ancestor: Ancestor being merged.
            kind: Member kind to resolve.
        """
        pending = self._pending.get(child.class_name, {}).get(kind)
        if not pending:
            return

        for name in list(pending):
            source = self._own_member(ancestor, kind, name)
            if source is None or source.requests_inherited_docs:
                continue
            target = self._own_member(child, kind, name)
            if target is not None:
                self._copy_docs(target, source)
            pending.remove(name)

    def _own_member(self, record: ClassRecord, kind: str, name: str) -> Member | None:
        """Return a member declared by the record itself, not inherited."""
        for member in record.members(kind):
            if member.name == name and not member.is_inherited:
                return member
        return None

    def _copy_docs(self, target: Member, source: Member) -> None:
        """Replace a member's docs with the source's, merging method tags."""
        target.docs = source.docs.model_copy(deep=True) if source.docs is not None else None
        if isinstance(target, MethodDef):
            merge_method_docs(target)

    def second_pass_inherited_docs(self) -> None:
        """Resolve documentation requests the first pass could not satisfy.

        Requests stay pending when the nearest ancestor was itself still an
        inherit marker at the time. Now that every record has been merged,
        pending requests are retried against the first documented ancestor,
        and inherited copies of members that were resolved late are
        refreshed from their declaring class.
        """
        records = self.table.records()

        for record in records:
            pending = self._pending.get(record.class_name)
            if not pending:
                continue
            for kind, names in pending.items():
                for name in list(names):
                    source = self._find_documented(record, kind, name, {record.class_name})
                    target = self._own_member(record, kind, name)
                    if source is None or target is None:
                        continue
                    self._copy_docs(target, source)
                    names.remove(name)

        for record in records:
            for kind in MEMBER_KINDS:
                members = record.members(kind)
                for index, member in enumerate(members):
                    if member.inherited is None or not member.requests_inherited_docs:
                        continue
                    owner = self.table.get(member.inherited.from_class)
                    source = self._own_member(owner, kind, member.name) if owner else None
                    if source is None or source.requests_inherited_docs:
                        continue
                    refreshed = source.model_copy(deep=True)
                    refreshed.inherited = member.inherited
                    members[index] = refreshed

        unresolved = sum(len(names) for kinds in self._pending.values() for names in kinds.values())
        if unresolved:
            logger.debug(f"{unresolved} @inheritDoc requests left without ancestor documentation")

    def _find_documented(
        self, record: ClassRecord, kind: str, name: str, visited: set[str]
    ) -> Member | None:
        """Search ancestors depth-first for the first documented member.

        Args:
            record: Record whose ancestors are searched.
            kind: Member kind.
            name: Member name.
            visited: Class names already searched.

        Returns:
            Own member of the nearest ancestor that is not an inherit marker.
        """
        for ancestor in self._ancestors(record):
            if ancestor.class_name in visited:
                continue
            visited.add(ancestor.class_name)
            member = self._own_member(ancestor, kind, name)
            if member is not None and not member.requests_inherited_docs:
                return member
            found = self._find_documented(ancestor, kind, name, visited)
            if found is not None:
                return found
        return None

    def link_references(self) -> None:
        """Link type references to parsed records and sort every record.

        Inherited members are linked against the import table of the class
        that declares them.
        """
        for record in self.table.records():
            for kind in MEMBER_KINDS:
                for member in record.members(kind):
                    aliases = self._aliases_for(record, member)
                    for reference in member_references(member):
                        self._link(reference, aliases)

            for event in record.events:
                for reference in doc_references(event.docs):
                    self._link(reference, record.uses)
                for param in event.params:
                    for reference in type_references(param.type):
                        self._link(reference, record.uses)

            ancestors = [record.extends] if record.extends is not None else []
            for reference in [*ancestors, *record.implements, *record.traits]:
                self._link(reference, record.uses)

            self._describe_traits(record)
            sort_definitions(record)

    def _aliases_for(self, record: ClassRecord, member: Member) -> AliasTable:
        """Return the import table of the class that declares a member."""
        if member.inherited is None:
            return record.uses
        owner = self.table.get(member.inherited.from_class)
        return owner.uses if owner is not None else {}

    def _link(self, reference: ClassReference, aliases: AliasTable) -> None:
        """Apply the import table and mark the reference linked if parsed."""
        alias = aliases.get(reference.class_name)
        if alias is not None:
            reference.class_name = alias.class_name
        if reference.class_name in self.table:
            reference.linked = True

    def _describe_traits(self, record: ClassRecord) -> None:
        """Copy each parsed trait's name and summary onto its reference."""
        for reference in record.traits:
            trait = self.table.resolve(reference)
            if trait is None:
                continue
            reference.name = trait.name
            if trait.docs is not None:
                reference.summary = trait.docs.summary or trait.docs.body
