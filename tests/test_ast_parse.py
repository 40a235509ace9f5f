from textwrap import dedent

import pytest

from gosrc.ast_parse import FileSet, FuncDecl, GenDecl, comment_text, parse_dir, parse_file
from gosrc.config import ParseMode
from gosrc.errors import ParseError


def test_parse_simple_file(tmp_path):
	code = dedent(
		"""
		// Package m does things.
		package m

		import (
			"fmt"
			str "strings"
		)

		// Answer is the answer.
		const Answer = 42

		type T struct {
			A, B int
			*Embedded
		}

		func (t *T) M(x int, rest ...string) (int, error) {
			return x, nil
		}

		func f() { fmt.Println(str.ToUpper("x")) }
		"""
	).lstrip()
	p = tmp_path / "m.go"
	p.write_text(code)
	fset = FileSet()
	sf = parse_file(fset, str(p))
	assert sf.name == "m"
	assert [(s.path, s.name) for s in sf.imports] == [("fmt", None), ("strings", "str")]
	assert sf.doc is not None and sf.doc.text() == "Package m does things.\n"
	assert fset.base() > 1

	consts = list(sf.gen_decls("const"))
	assert consts[0].doc.text() == "Answer is the answer.\n"
	funcs = list(sf.funcs())
	assert [f.name.name for f in funcs] == ["M", "f"]
	method = funcs[0]
	assert method.recv is not None and sf.type_string(method.recv.type) == "*T"
	assert [n.name for n in method.params[0].names] == ["x"]
	assert method.params[1].variadic
	assert [sf.type_string(r.type) for r in method.results] == ["int", "error"]


def test_trailing_comment_is_not_a_doc(tmp_path):
	p = tmp_path / "t.go"
	p.write_text("package t\n\nvar a = 1 // trailing\nvar B = 2\n")
	sf = parse_file(FileSet(), str(p))
	decls = list(sf.gen_decls("var"))
	assert decls[1].doc is None
	assert sf.comments[0].trailing


def test_syntax_error_carries_position(tmp_path):
	p = tmp_path / "bad.go"
	p.write_text("package bad\n\nfunc f( {\n")
	with pytest.raises(ParseError) as info:
		parse_file(FileSet(), str(p))
	err = info.value
	assert err.filename == str(p)
	assert err.position is not None and err.position.line >= 1


def test_invalid_utf8_is_a_parse_error(tmp_path):
	p = tmp_path / "enc.go"
	p.write_bytes(b'package enc\n\nvar S = "caf\xff"\n')
	with pytest.raises(ParseError) as info:
		parse_file(FileSet(), str(p))
	assert info.value.msg == "illegal UTF-8 encoding"
	assert (info.value.position.line, info.value.position.column) == (3, 13)

	with pytest.raises(ParseError):
		parse_file(FileSet(), "c.go", src=b"package c\n\n// \xfe\nfunc F() {}\n")


def test_missing_package_clause():
	with pytest.raises(ParseError):
		parse_file(FileSet(), "x.go", src=b"func f() {}\n")


def test_imports_only_ignores_later_errors():
	src = b'package h\n\nimport "fmt"\n\nfunc broken( {\n'
	sf = parse_file(FileSet(), "h.go", src=src, mode=ParseMode.IMPORTS_ONLY)
	assert [s.path for s in sf.imports] == ["fmt"]
	assert not [d for d in sf.decls if isinstance(d, FuncDecl)]


def test_parse_dir_groups_packages_and_filters(tmp_path):
	(tmp_path / "a.go").write_text("package a\n\nfunc A() {}\n")
	(tmp_path / "a_test.go").write_text("package a_test\n\nfunc TestA() {}\n")
	(tmp_path / "skip.go").write_text("package other\n")
	(tmp_path / "notes.txt").write_text("not go")
	fset = FileSet()
	pkgs = parse_dir(fset, str(tmp_path), lambda name: name != "skip.go")
	assert sorted(pkgs) == ["a", "a_test"]
	assert [f.path for f in pkgs["a"].file_list()] == [str(tmp_path / "a.go")]
	assert len(fset.files()) == 2


def test_parse_dir_missing_directory(tmp_path):
	with pytest.raises(ParseError):
		parse_dir(FileSet(), str(tmp_path / "missing"))


def test_grouped_specs_and_docs():
	src = dedent(
		"""
		package g

		// Block doc.
		const (
			// A doc.
			A = iota
			B
		)
		"""
	).lstrip().encode()
	sf = parse_file(FileSet(), "g.go", src=src)
	decl = next(sf.gen_decls("const"))
	assert isinstance(decl, GenDecl) and decl.lparen
	assert decl.doc.text() == "Block doc.\n"
	assert decl.specs[0].doc.text() == "A doc.\n"
	assert [s.names[0].name for s in decl.specs] == ["A", "B"]
	assert decl.specs[1].values == []


def test_comment_text():
	assert comment_text(["//go:generate stringer", "// Hello", "//", "//", "// world"]) == "Hello\n\nworld\n"
	assert comment_text(["/* block\n   text */"]) == " block\n   text\n"
	assert comment_text(["//"]) == ""


def test_file_set_positions():
	fset = FileSet()
	first = parse_file(fset, "one.go", src=b"package one\n")
	second = parse_file(fset, "two.go", src=b"package two\n\nvar X = 1\n")
	decl = next(second.gen_decls("var"))
	pos = second.pos(decl.node)
	assert pos > first.file.base
	position = fset.position(pos)
	assert (position.filename, position.line, position.column) == ("two.go", 3, 1)
