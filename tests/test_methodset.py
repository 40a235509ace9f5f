from textwrap import dedent

import pytest

from conftest import MapImporter
from gosrc.ast_parse import FileSet, parse_file
from gosrc.checker import Checker, Scope, TypesPackage
from gosrc.errors import NameNotFoundError, NotExportedError
from gosrc.methodset import MethodResolver, Reach, is_api_name
from gosrc.model import Named, ObjectKind, Signature, Symbol, is_test


def resolver(src):
	fset = FileSet()
	f = parse_file(fset, "p.go", src=dedent(src).lstrip().encode())
	return MethodResolver(Checker(MapImporter()).check("example.com/p", fset, [f]))


@pytest.mark.parametrize("name,prefix,expected", [
	("Test", "Test", True),
	("TestFoo", "Test", True),
	("Test_foo", "Test", True),
	("Test1", "Test", True),
	("Testicular", "Test", False),
	("ExampleFoo", "Example", True),
	("Examples", "Example", False),
	("Foo", "Test", False),
	("Test\u00aa", "Test", True),
	("Test\u00e9t\u00e9", "Test", False),
])
def test_is_test(name, prefix, expected):
	assert is_test(name, prefix) is expected


def test_is_api_name():
	assert is_api_name("\u00c9t\u00e9")
	assert not is_api_name("\u00aaOrdinal")
	assert not is_api_name("")
	assert is_api_name("Testicular")
	assert is_api_name("Foo")
	assert not is_api_name("TestFoo")
	assert not is_api_name("Example")
	assert not is_api_name("foo")


def test_value_and_pointer_union():
	r = resolver("""
		package p

		type T struct{}

		func (T) A() {}

		func (*T) B() {}

		func (T) c() {}
	""")
	assert r.method_set("T").names() == ["A", "B", "c"]
	assert r.reach("T", "A") == Reach.VALUE | Reach.POINTER
	assert r.reach("T", "B") == Reach.POINTER
	assert r.reach("T", "missing") == Reach.NONE


def test_promotion_and_shadowing():
	r = resolver("""
		package p

		type Base struct{}

		func (Base) Hello() {}

		func (*Base) Reset() {}

		func (Base) Shadowed() {}

		type Mid struct{ Base }

		func (Mid) Shadowed() {}

		type Top struct {
			Mid
			*Other
		}

		type Other struct{}

		func (Other) Extra() {}
	""")
	ms = r.method_set("Top")
	assert ms.names() == ["Extra", "Hello", "Reset", "Shadowed"]
	assert ms.methods["Shadowed"].symbol.recv == "Mid"
	# Reset needs an addressable Base; Top embeds Mid by value
	assert r.reach("Top", "Reset") == Reach.POINTER
	assert r.reach("Top", "Extra") == Reach.VALUE | Reach.POINTER


def test_same_depth_collision_cancels():
	r = resolver("""
		package p

		type A struct{}

		func (A) Name() {}

		func (A) OnlyA() {}

		type B struct{}

		func (B) Name() {}

		type C struct {
			A
			B
		}
	""")
	assert r.method_set("C").names() == ["OnlyA"]


def test_field_shadows_promoted_method():
	r = resolver("""
		package p

		type Inner struct{}

		func (Inner) Size() int { return 0 }

		type Outer struct {
			Inner
			Size int
		}
	""")
	assert r.method_set("Outer").names() == []


def test_interfaces_and_embedding():
	r = resolver("""
		package p

		type Reader interface{ Read() }

		type ReadCloser interface {
			Reader
			Close()
		}

		type Wrapper struct{ ReadCloser }
	""")
	assert r.method_set("ReadCloser").names() == ["Close", "Read"]
	assert r.reach("ReadCloser", "Read") == Reach.VALUE
	assert r.method_set("Wrapper").names() == ["Close", "Read"]
	assert r.reach("Wrapper", "Close") == Reach.VALUE | Reach.POINTER


def test_values_of_named_types():
	r = resolver("""
		package p

		type Level int

		func (Level) String() string { return "" }

		func (*Level) Set(s string) {}

		const Debug Level = 0

		var Current = new(Level)

		var Plain = 1
	""")
	assert r.method_set("Debug").names() == ["Set", "String"]
	assert r.reach("Debug", "Set") == Reach.POINTER
	assert r.reach("Current", "Set") == Reach.VALUE | Reach.POINTER
	assert r.method_set("Plain").names() == []
	assert set(r.methods()) == {"Current", "Debug", "Level"}
	assert [v.name for v in r.variables()] == ["Current", "Plain"]


def test_lookup_errors():
	r = resolver("""
		package p

		type hidden struct{}

		type TestHelper struct{}

		type Testing struct{}
	""")
	with pytest.raises(NameNotFoundError) as err:
		r.method_set("Nope")
	assert str(err.value) == "named type was not found: Nope"
	assert isinstance(err.value, LookupError)
	with pytest.raises(NotExportedError):
		r.method_set("hidden")
	with pytest.raises(NotExportedError) as err:
		r.method_set("TestHelper")
	assert str(err.value) == "named type was not exported: TestHelper"
	assert r.method_set("Testing").names() == []


def _method(name, pointer):
	return Symbol(
		name=name, kind=ObjectKind.FUNC, package="p", recv="T",
		pointer_recv=pointer, signature=Signature(),
	)


def test_pointer_entries_written_last():
	value_m, pointer_m = _method("M", False), _method("M", True)
	scope = Scope()
	scope.insert(Symbol(name="T", kind=ObjectKind.TYPE, package="p", named=Named(kind="other")))

	class Fixed(MethodResolver):
		def _methods_of(self, sym, pointer):
			return {"M": pointer_m if pointer else value_m, "V": value_m}

	ms = Fixed(TypesPackage("p", "p", scope, [])).method_set("T")
	assert ms.names() == ["M", "V"]
	assert ms.methods["M"].symbol is pointer_m
	assert ms.methods["V"].symbol is value_m
	assert len(ms) == 2
