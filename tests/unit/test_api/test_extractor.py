"""Tests for declaration extraction."""

import pytest

from phpapidoc.api.base import TreeSitterParser
from phpapidoc.api.extractor import DeclarationExtractor
from phpapidoc.api.models import DeclarationKind, ReferenceType, ScalarType, UnionType, Visibility
from phpapidoc.core.exceptions import ExtractionError, PhpSyntaxError


class TestNamespacesAndImports:
    """Tests for namespace and import extraction."""

    def test_namespace_and_fqn(self, extract):
        """Test the record carries its namespace and fully-qualified name."""
        record = extract("<?php\nnamespace Docs\\Api;\n\nclass Mysql {}\n")

        assert record.name == "Mysql"
        assert record.class_name == "Docs\\Api\\Mysql"
        assert record.namespace == "Docs\\Api"
        assert record.kind == DeclarationKind.CLASS

    def test_global_namespace(self, extract):
        """Test units without a namespace use the global sentinel."""
        record = extract("<?php\n\nclass Plain {}\n")

        assert record.class_name == "Plain"
        assert record.namespace == "__GLOBAL__"

    def test_single_and_aliased_imports(self, extract):
        """Test plain and renamed imports."""
        record = extract(
            "<?php\nnamespace Docs;\n\nuse Lib\\Collection;\nuse Lib\\Contracts\\Db as DbContract;\n\nclass A {}\n"
        )

        assert record.uses["Collection"].class_name == "Lib\\Collection"
        assert record.uses["DbContract"].class_name == "Lib\\Contracts\\Db"
        assert record.uses["DbContract"].name == "Lib\\Contracts\\Db"

    def test_grouped_imports(self, extract):
        """Test grouped imports get the shared prefix."""
        record = extract(
            "<?php\nnamespace Docs;\n\nuse Lib\\Utilities\\{StringUtility, NumberUtility as Num};\n\nclass A {}\n"
        )

        assert record.uses["StringUtility"].class_name == "Lib\\Utilities\\StringUtility"
        assert record.uses["Num"].class_name == "Lib\\Utilities\\NumberUtility"

    def test_function_imports_skipped(self, extract):
        """Test function and const imports are not class aliases."""
        record = extract("<?php\nnamespace Docs;\n\nuse function Lib\\helper;\nuse const Lib\\LIMIT;\n\nclass A {}\n")

        assert record.uses == {}

    def test_imports_not_serialized(self, extract):
        """Test the import table is internal to the record."""
        record = extract("<?php\nnamespace Docs;\n\nuse Lib\\Collection;\n\nclass A {}\n")

        assert "uses" not in record.to_dict()


class TestDeclarations:
    """Tests for class-like declarations."""

    def test_extends_and_implements(self, extract):
        """Test ancestors resolve through imports and the namespace."""
        record = extract(
            "<?php\nnamespace Docs\\Api;\n\nuse Docs\\Contracts\\Db as DbContract;\n\n"
            "final class Mysql extends BaseDb implements DbContract, \\Countable {}\n"
        )

        assert record.final is True
        assert record.extends.class_name == "Docs\\Api\\BaseDb"
        assert record.extends.name == "BaseDb"
        assert [i.class_name for i in record.implements] == ["Docs\\Contracts\\Db", "Countable"]
        assert record.implements[0].name == "Db"

    def test_abstract_class(self, extract):
        """Test the abstract modifier."""
        record = extract("<?php\nabstract class Base {}\n")

        assert record.abstract is True
        assert record.final is False

    def test_interface(self, extract):
        """Test interfaces keep methods and never record ancestors."""
        record = extract(
            "<?php\nnamespace Docs;\n\ninterface Db extends Base\n{\n    const LIMIT = 10;\n"
            "    public function query(string $statement);\n}\n"
        )

        assert record.kind == DeclarationKind.INTERFACE
        assert record.extends is None
        assert record.has_ancestors is False
        assert [m.name for m in record.methods] == ["query"]
        assert [c.name for c in record.constants] == ["LIMIT"]

    def test_trait_uses(self, extract):
        """Test used traits are recorded as references."""
        record = extract(
            "<?php\nnamespace Docs;\n\nuse Lib\\Traits\\IsUtility;\n\nclass A\n{\n    use IsUtility, Local;\n}\n"
        )

        assert [t.class_name for t in record.traits] == ["Lib\\Traits\\IsUtility", "Docs\\Local"]

    def test_class_docs(self, extract):
        """Test the class doc comment is parsed."""
        record = extract(
            "<?php\nnamespace Docs;\n\n/**\n * Mysql library.\n *\n * @deprecated 1.0.1\n */\nclass A {}\n"
        )

        assert record.docs.summary == "<p>Mysql library.</p>"
        assert record.docs.deprecated == "1.0.1"

    def test_no_declaration(self, extract):
        """Test a unit without a class-like declaration is rejected."""
        with pytest.raises(ExtractionError) as exc_info:
            extract("<?php\nfunction helper() {}\n")

        assert exc_info.value.reason == ExtractionError.NO_DECLARATION

    def test_ambiguous_declarations(self, extract):
        """Test a unit with two declarations is rejected."""
        with pytest.raises(ExtractionError) as exc_info:
            extract("<?php\nclass A {}\nclass B {}\n")

        assert exc_info.value.reason == ExtractionError.AMBIGUOUS
        assert exc_info.value.details["declarations"] == 2

    def test_syntax_error(self):
        """Test invalid PHP raises a syntax error with a line number."""
        with pytest.raises(PhpSyntaxError) as exc_info:
            TreeSitterParser().parse_unit("Broken.php", b"<?php\nclass A {\n    public function (\n}\n")

        assert exc_info.value.line is not None
        assert exc_info.value.message.startswith("Syntax error")


class TestMembers:
    """Tests for constants, properties and methods."""

    def test_multiple_constants_in_one_statement(self, extract):
        """Test each constant of a grouped declaration is recorded."""
        record = extract("<?php\nclass A\n{\n    /** Limits */\n    protected const LOW = 1, HIGH = 2;\n}\n")

        assert [c.name for c in record.constants] == ["LOW", "HIGH"]
        assert all(c.visibility == Visibility.PROTECTED for c in record.constants)
        assert record.constants[1].docs.summary == "<p>Limits</p>"
        assert record.constants[0].line == 5

    def test_property_type_precedence(self, extract):
        """Test declared beats documented beats default value type."""
        record = extract(
            """<?php
namespace Docs;

class Props
{
    public $plain;

    public $withDefault = 'x';

    /** @var int */
    public $documented = 'x';

    /** @var int */
    public string $declared = 'x';

    public $nullable = null;

    /** @var string|null */
    public $union;

    protected static ?Model $model;
}
"""
        )

        assert record.get_property("plain").type == ScalarType(type="mixed")
        assert record.get_property("plain").default is None
        assert record.get_property("withDefault").type == ScalarType(type="string")
        assert record.get_property("withDefault").default == '"x"'
        assert record.get_property("documented").type == ScalarType(type="int")
        assert record.get_property("declared").type == ScalarType(type="string")
        assert record.get_property("nullable").type == ScalarType(type="mixed")
        assert record.get_property("nullable").default == "null"

        union = record.get_property("union").type
        assert union.model_dump() == {
            "definition": "union",
            "types": [
                {"definition": "scalar", "type": "string"},
                {"definition": "scalar", "type": "null"},
            ],
        }

        model = record.get_property("model")
        assert model.static is True
        assert model.visibility == Visibility.PROTECTED
        assert isinstance(model.type, UnionType)
        assert model.type.types[0].type.class_name == "Docs\\Model"

    def test_method_signature(self, extract):
        """Test method modifiers, parameters and return types."""
        record = extract(
            """<?php
namespace Docs;

abstract class Repo
{
    /**
     * Finds records.
     *
     * @param string $query The query
     * @param int $limit
     * @return Model[] Matching records
     */
    final public static function find($query, int $limit = 10, ...$rest): array
    {
        return [];
    }

    abstract protected function build(Model $model);
}
"""
        )

        find = record.get_method("find")
        assert find.final is True
        assert find.static is True
        assert find.visibility == Visibility.PUBLIC
        assert find.lines == [13, 16]
        assert [p.name for p in find.params] == ["query", "limit", "rest"]
        assert find.params[0].type == ScalarType(type="string")
        assert find.params[0].summary == "<p>The query</p>"
        assert find.params[1].type == ScalarType(type="int")
        assert find.params[1].default == "10"
        assert find.params[2].type == ScalarType(type="mixed")
        assert find.returns.type == ScalarType(type="array")
        assert find.returns.summary == "<p>Matching records</p>"

        build = record.get_method("build")
        assert build.abstract is True
        assert build.visibility == Visibility.PROTECTED
        assert isinstance(build.params[0].type, ReferenceType)
        assert build.params[0].type.type.class_name == "Docs\\Model"
        assert build.returns.type == ScalarType(type="mixed")

    def test_documented_return_used_without_declared(self, extract):
        """Test the @return type applies when nothing is declared."""
        record = extract("<?php\nclass A\n{\n    /** @return bool */\n    public function ok() {}\n}\n")

        assert record.get_method("ok").returns.type == ScalarType(type="bool")

    def test_promoted_constructor_properties(self, extract):
        """Test promoted constructor parameters become properties."""
        record = extract(
            "<?php\nclass Point\n{\n    public function __construct(private int $x = 0, protected $y = null) {}\n}\n"
        )

        assert [p.name for p in record.properties] == ["x", "y"]
        assert record.get_property("x").visibility == Visibility.PRIVATE
        assert record.get_property("x").type == ScalarType(type="int")
        assert record.get_property("x").default == "0"
        assert record.get_property("y").visibility == Visibility.PROTECTED

    def test_interface_properties_ignored(self, extract):
        """Test no properties are recorded for interfaces."""
        record = extract("<?php\ninterface I\n{\n    public function a();\n}\n")

        assert record.properties == []


class TestExtractorSettings:
    """Tests for extractor configuration."""

    def test_custom_global_namespace(self):
        """Test the global namespace sentinel is configurable."""
        content = b"<?php\nclass Plain {}\n"
        tree = TreeSitterParser().parse_unit("Plain.php", content)
        record = DeclarationExtractor(global_namespace="\\").extract(tree, content, "Plain.php")

        assert record.namespace == "\\"
        assert record.path == "Plain.php"
