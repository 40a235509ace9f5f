import logging
import os

import pytest

from conftest import MapImporter, TPKG
from gosrc.config import DocMode, ToolchainConfig
from gosrc.errors import PackageNotFoundError, ParseError, TypeCheckError
from gosrc.fs_scan import scan_package_dir
from gosrc.package import Package
from gosrc.toolchain import ToolchainBuilder


def builder(*paths, **kwargs):
	return ToolchainBuilder(ToolchainConfig(importer=MapImporter(*paths), **kwargs))


def test_build_bundle():
	bundle = builder("fmt", "strings", "testing").build(TPKG, "tpkg", "example.com/tpkg")
	assert bundle.import_path == "example.com/tpkg"
	assert bundle.syntax.name == "tpkg"
	assert bundle.doc.name == "tpkg"
	assert bundle.types.name() == "tpkg"
	assert bundle.info is None
	# the xtest package is parsed but is not part of the bundle
	assert not any(f.path.endswith("_ext_test.go") for f in bundle.files())


def test_documentation_works_on_its_own_parse():
	bundle = builder("fmt", "strings", "testing").build(TPKG, "tpkg")
	files = bundle.files()
	# the type checked forest keeps bodies, docs and unexported declarations
	sum_decl = next(d for f in files for d in f.funcs() if d.name.name == "Sum")
	assert sum_decl.body is not None
	assert sum_decl.doc is not None
	assert any(d.name.name == "funcOne" for f in files for d in f.funcs())
	assert all(sf.file is bundle.fset.file(sf.file.base) for sf in files)


def test_import_path_defaults_to_package_name():
	bundle = builder("fmt", "strings", "testing").build(TPKG, "tpkg")
	assert bundle.import_path == "tpkg"
	assert bundle.types.path() == "tpkg"


def test_missing_package_name(write_pkg):
	directory = write_pkg({"p_test.go": "package p_test\n"})
	with pytest.raises(PackageNotFoundError) as err:
		builder().build(directory, "p")
	assert err.value.package_name == "p"
	assert err.value.directory == directory


def test_empty_directory(tmp_path):
	with pytest.raises(PackageNotFoundError):
		builder().build(str(tmp_path), "p")


def test_parse_error_stops_the_build(write_pkg):
	directory = write_pkg({"a.go": "package p\n", "b.go": "package p\n\nfunc {\n"})
	with pytest.raises(ParseError) as err:
		builder().build(directory, "p")
	assert err.value.filename.endswith("b.go")


def test_type_errors_discard_everything(write_pkg, caplog):
	directory = write_pkg({"p.go": 'package p\n\nimport "nowhere"\n'})
	with caplog.at_level(logging.WARNING, logger="gosrc.toolchain"):
		with pytest.raises(TypeCheckError) as err:
			builder().build(directory, "p")
	assert "could not import nowhere" in str(err.value)
	assert "building p" in caplog.text


def test_file_filter(write_pkg):
	directory = write_pkg({"a.go": "package p\n\nvar A = 1\n", "bad.go": "package p\n\nvar A = 2\n"})
	bundle = builder().build(directory, "p", file_filter=lambda name: name == "a.go")
	assert bundle.types.scope().names() == ["A"]


def test_eager_annotations_and_doc_mode():
	bundle = builder("fmt", "strings", "testing", annotate=True, doc_mode=DocMode.ALL_DECLS).build(TPKG, "tpkg")
	assert bundle.info is not None and bundle.info.defs
	assert any(f.name == "funcOne" for f in bundle.doc.funcs)
	pkg = Package(scan_package_dir("example.com/tpkg", TPKG), builder("fmt", "strings", "testing", annotate=True))
	info, _ = pkg.to_types_with_annotations()
	assert info is pkg.init().info


def test_relocated_identity_fails_fresh_build(tmp_path):
	identity = scan_package_dir("example.com/tpkg", TPKG)
	gone = Package(identity.model_copy(update={"dir": str(tmp_path / "gone")}), builder())
	with pytest.raises(ParseError):
		gone.init()
	empty = Package(identity.model_copy(update={"dir": str(tmp_path)}), builder())
	with pytest.raises(PackageNotFoundError):
		empty.docs()
	assert empty.ready() is None


@pytest.mark.parametrize("src", [
	"func F() { undefinedName() }",
	'func F() int { return "s" }',
	'var X int = "s"',
	'import "fmt"',
	"func F() { x := 1 }",
	"var X = undefinedName",
])
def test_resolution_and_type_errors_fail_the_build(write_pkg, src):
	directory = write_pkg({"p.go": "package p\n\n" + src + "\n"})
	pkg = Package(scan_package_dir("example.com/p", directory), builder("fmt"))
	with pytest.raises(TypeCheckError):
		pkg.functions()
	assert pkg.ready() is None


def test_invalid_utf8_fails_the_build(write_pkg):
	directory = write_pkg({"p.go": "package p\n\nfunc F() {}\n"})
	with open(os.path.join(directory, "q.go"), "wb") as fh:
		fh.write(b"package p\n\n// caf\xff\nvar S = 1\n")
	pkg = Package(scan_package_dir("example.com/p", directory), builder())
	with pytest.raises(ParseError) as err:
		pkg.functions()
	assert err.value.filename.endswith("q.go")
