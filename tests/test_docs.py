from textwrap import dedent

from gosrc.ast_parse import FileSet, FuncDecl, SyntaxPackage, parse_dir, parse_file
from gosrc.config import DocMode
from gosrc.docextract import clean, examples, first_sentence_len, new_doc, synopsis


def _pkg(files, name="p"):
	fset = FileSet()
	pkg = SyntaxPackage(name=name)
	for filename, src in files.items():
		pkg.files[filename] = parse_file(fset, filename, src=dedent(src).lstrip().encode())
	return pkg


def _doc(files, mode=DocMode(0)):
	return new_doc(_pkg(files), "example.com/p", mode)


def test_clean():
	assert clean("  a \t b\n\nc  ") == "a b c"
	assert clean("a  b\nc", 1) == "a b\nc"


def test_first_sentence():
	assert first_sentence_len("Hello world. More.") == len("Hello world.")
	assert first_sentence_len("Uses the U.S. system. Then.") == len("Uses the U.S. system.")
	assert first_sentence_len("no period") == len("no period")


def test_synopsis():
	assert synopsis("Package p does things.\nMore text.") == "Package p does things."
	assert synopsis("Copyright 2024 The Authors.") == ""
	assert synopsis("author: me. And more.") == ""
	assert synopsis("Quote ``this'' now.") == "Quote “this” now."
	assert synopsis("") == ""


def test_values_attach_to_dominant_type():
	doc = _doc({"p.go": """
		package p

		type Kind int

		const (
			KA Kind = iota
			KB
			KC
			Other = 4
		)

		const (
			X Kind = 1
			Y = "y"
			Z = 2
		)
	"""})
	kind = next(t for t in doc.types if t.name == "Kind")
	assert [c.names for c in kind.consts] == [["KA", "KB", "KC", "Other"]]
	assert [c.names for c in doc.consts] == [["X", "Y", "Z"]]


def test_unexported_names_are_filtered():
	doc = _doc({"p.go": """
		package p

		var a, B = 1, 2

		var hidden = 3

		func helper() {}

		// Exported does things.
		func Exported() {}

		type inner struct{}

		func (inner) Method() {}
	"""})
	assert [v.names for v in doc.vars] == [["B"]]
	assert doc.vars[0].decl == "var _, B = 1, 2"
	assert [f.name for f in doc.funcs] == ["Exported"]
	assert doc.funcs[0].doc == "Exported does things.\n"
	assert doc.types == []


def test_all_decls_keeps_unexported():
	doc = _doc({"p.go": """
		package p

		var hidden = 3

		func helper() {}
	"""}, DocMode.ALL_DECLS)
	assert [v.names for v in doc.vars] == [["hidden"]]
	assert [f.name for f in doc.funcs] == ["helper"]


def test_factory_functions():
	doc = _doc({"p.go": """
		package p

		type T struct{}

		func New() *T { return nil }

		func NewAll() []T { return nil }

		func Pair() (*T, *T) { return nil, nil }

		func Count() int { return 0 }
	"""})
	t = doc.types[0]
	assert [f.name for f in t.funcs] == ["New", "NewAll"]
	# more than one result of a local type is not a constructor
	assert [f.name for f in doc.funcs] == ["Count", "Pair"]
	assert t.funcs[0].decl == "func New() *T"


def test_embedded_methods_are_promoted():
	files = {"p.go": """
		package p

		type Inner struct{}

		func (Inner) Get() int { return 0 }

		func (*Inner) Set(v int) {}

		type hidden struct{}

		func (hidden) Secret() {}

		type A struct{}

		func (A) Both() {}

		type B struct{}

		func (B) Both() {}

		type Outer struct {
			*Inner
			hidden
			A
			B
		}
	"""}
	doc = _doc(files)
	outer = next(t for t in doc.types if t.name == "Outer")
	# exported embedded methods are documented on their own type
	assert [m.name for m in outer.methods] == ["Secret"]
	assert outer.methods[0].decl == "func (Outer) Secret()"
	assert outer.methods[0].level == 1
	assert "// contains filtered or unexported fields" in outer.decl

	doc = _doc(files, DocMode.ALL_METHODS)
	outer = next(t for t in doc.types if t.name == "Outer")
	methods = {m.name: m for m in outer.methods}
	assert sorted(methods) == ["Get", "Secret", "Set"]
	assert methods["Set"].recv == "Outer"
	assert methods["Set"].decl == "func (Outer) Set(v int)"


def test_interface_members_filtered():
	doc = _doc({"p.go": """
		package p

		type I interface {
			Do()
			undo()
		}
	"""})
	assert doc.types[0].decl == "type I interface {\n\tDo()\n\t// contains filtered or unexported methods\n}"


def test_grouped_type_docs():
	doc = _doc({"p.go": """
		package p

		// Group doc.
		type (
			// A doc.
			A int
			B string
		)
	"""})
	docs = {t.name: t.doc for t in doc.types}
	assert docs == {"A": "A doc.\n", "B": "Group doc.\n"}


def test_new_doc_consumes_its_input():
	pkg = _pkg({"p.go": """
		// Package p.
		package p

		// F does.
		func F() { println() }
	"""})
	f = pkg.files["p.go"]
	decl = next(d for d in f.decls if isinstance(d, FuncDecl))
	doc = new_doc(pkg, "p")
	assert doc.doc == "Package p.\n"
	assert f.doc is None
	assert decl.doc is None
	assert decl.body is None


def test_package_doc_from_several_files():
	doc = _doc({
		"a.go": "// First part.\npackage p\n",
		"b.go": "// Second part.\npackage p\n",
	})
	assert doc.doc == "First part.\n\nSecond part.\n"
	assert doc.filenames == ["a.go", "b.go"]


def test_notes():
	doc = _doc({"p.go": """
		package p

		// TODO(alice): first line
		// continues here.
		// TODO(bob) second
		func F() {}

		/* BUG(carol): block bug */
		var V = 1

		// NOTE(x):
	"""})
	todos = doc.notes["TODO"]
	assert [(n.uid, n.body) for n in todos] == [("alice", "first line\ncontinues here.\n"), ("bob", "second\n")]
	assert doc.bugs == ["block bug\n"]
	assert "NOTE" not in doc.notes
	assert todos[0].position.line == 3


def test_examples(tmp_path):
	(tmp_path / "p.go").write_text("package p\n\nfunc F() int { return 1 }\n")
	(tmp_path / "ex_test.go").write_text(dedent("""
		package p

		import "fmt"

		func ExampleF() {
			fmt.Println(F())
			// Unordered output:
			// 1
		}

		func ExampleF_empty() {
			F()
			// Output:
		}

		func ExampleF_none() {
			F()
		}

		func ExampleBad(x int) {}

		func TestF(t *T) {}

		type T struct{}
	""").lstrip())
	(tmp_path / "whole_test.go").write_text(dedent("""
		package p

		type helper struct{}

		func ExampleWhole() {
			_ = helper{}
		}
	""").lstrip())
	pkgs = parse_dir(FileSet(), str(tmp_path))
	found = examples(pkgs["p"].file_list())
	assert [e.name for e in found] == ["F", "F_empty", "F_none", "Whole"]
	f, empty, none, whole = found
	assert f.unordered and f.output == "1\n"
	assert empty.empty_output and empty.output == ""
	assert not none.empty_output and none.output == ""
	assert whole.code.startswith("package p")
	assert f.code.startswith("{")
