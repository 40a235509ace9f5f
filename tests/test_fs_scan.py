import os

import pytest

from conftest import TESTDATA, TPKG
from gosrc.config import BuildSettings
from gosrc.errors import ImportNotFoundError, MultiplePackageError, NoGoFilesError
from gosrc.fs_scan import (
	build_constraint,
	detect_kind,
	eval_constraint,
	find_module,
	good_os_arch_file,
	locate,
	scan_package_dir,
)


LINUX = BuildSettings(goroot="", gopath="", goos="linux", goarch="amd64")


def test_detect_kind():
	assert detect_kind("a.go") == "go"
	assert detect_kind("a.cpp") == "cxx"
	assert detect_kind("a.S") == "s"
	assert detect_kind("README.md") == "unknown"


def test_good_os_arch_file():
	assert good_os_arch_file("x.go", LINUX)
	assert good_os_arch_file("x_linux.go", LINUX)
	assert not good_os_arch_file("x_windows.go", LINUX)
	assert good_os_arch_file("x_linux_amd64_test.go", LINUX)
	assert not good_os_arch_file("x_linux_arm64.go", LINUX)
	assert good_os_arch_file("x_helper.go", LINUX)


def test_eval_constraint():
	tags = {"linux", "cgo"}.__contains__
	assert eval_constraint("linux && cgo", tags)
	assert not eval_constraint("linux && !cgo", tags)
	assert eval_constraint("(windows || linux) && !ignore", tags)
	with pytest.raises(ValueError):
		eval_constraint("linux &&", tags)
	with pytest.raises(ValueError):
		eval_constraint("(linux", tags)


def test_build_constraint():
	assert build_constraint(["//go:build linux && !cgo"]) == "linux && !cgo"
	assert build_constraint(["// +build linux,amd64 darwin"]) == "((linux && amd64) || (darwin))"
	assert build_constraint(["// just a comment"]) is None


def test_scan_fixture():
	ident = scan_package_dir("example.com/tpkg", TPKG, LINUX)
	assert ident.name == "tpkg"
	assert ident.go_files == ["tpkg.go", "tpkg_private.go"]
	assert ident.test_go_files == ["tpkg_example_test.go", "tpkg_test.go"]
	assert ident.xtest_go_files == ["tpkg_ext_test.go"]
	assert ident.ignored_go_files == ["tpkg_ignored.go"]
	assert ident.imports == ["fmt", "strings"]
	assert ident.test_imports == ["example.com/tpkg", "fmt", "testing"]


def test_scan_multiple_packages(write_pkg):
	directory = write_pkg({"a.go": "package a\n", "b.go": "package b\n"})
	with pytest.raises(MultiplePackageError) as info:
		scan_package_dir("p", directory, LINUX)
	assert info.value.packages == ["a", "b"]
	assert info.value.files == ["a.go", "b.go"]


def test_scan_no_go_files(write_pkg):
	directory = write_pkg({"only_windows.go": "package p\n", "x.c": "int x;\n"})
	with pytest.raises(NoGoFilesError):
		scan_package_dir("p", directory, LINUX)


def test_scan_classifies_other_sources(write_pkg):
	directory = write_pkg({
		"p.go": "package p\n",
		"p.c": "int x;\n",
		"p.h": "int x;\n",
		"p_amd64.s": "TEXT x(SB)\n",
		"cgo.go": 'package p\n\nimport "C"\n',
	})
	ident = scan_package_dir("p", directory, LINUX)
	assert ident.go_files == ["p.go"]
	assert ident.cgo_files == ["cgo.go"]
	assert ident.c_files == ["p.c"]
	assert ident.h_files == ["p.h"]
	assert ident.s_files == ["p_amd64.s"]


def test_cgo_disabled_ignores_cgo_files(write_pkg):
	directory = write_pkg({"p.go": "package p\n", "cgo.go": 'package p\n\nimport "C"\n'})
	ident = scan_package_dir("p", directory, LINUX.model_copy(update={"cgo_enabled": False}))
	assert ident.cgo_files == []
	assert ident.ignored_go_files == ["cgo.go"]


def test_find_module():
	assert find_module(TPKG) == ("example.com/tpkg", TPKG)
	assert find_module(os.path.join(TPKG, "sub")) == ("example.com/tpkg", TPKG)


def test_locate_module_and_relative_paths():
	ident = locate("example.com/tpkg", TPKG, LINUX)
	assert ident.dir == TPKG and ident.module == "example.com/tpkg"
	assert locate("./tpkg", TESTDATA, LINUX).dir == TPKG
	assert locate(TPKG, "/", LINUX).name == "tpkg"


def test_locate_reports_searched_dirs(tmp_path):
	with pytest.raises(ImportNotFoundError) as info:
		locate("example.com/missing", str(tmp_path), LINUX)
	assert info.value.import_path == "example.com/missing"
	assert os.path.join(str(tmp_path), "vendor", "example.com", "missing") in info.value.searched


def test_locate_vendor(tmp_path):
	vendored = tmp_path / "vendor" / "example.com" / "dep"
	vendored.mkdir(parents=True)
	(vendored / "dep.go").write_text("package dep\n")
	ident = locate("example.com/dep", str(tmp_path), LINUX)
	assert ident.dir == str(vendored)
	assert ident.name == "dep"


def test_locate_gopath(tmp_path):
	src = tmp_path / "gopath" / "src" / "example.org" / "lib"
	src.mkdir(parents=True)
	(src / "lib.go").write_text("package lib\n")
	settings = LINUX.model_copy(update={"gopath": str(tmp_path / "gopath")})
	ident = locate("example.org/lib", str(tmp_path / "elsewhere"), settings)
	assert ident.dir == str(src)
	assert ident.root == str(tmp_path / "gopath")


def test_empty_import_path():
	with pytest.raises(ImportNotFoundError):
		locate("", TPKG, LINUX)
