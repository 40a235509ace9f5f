import os

import pytest

from conftest import MapImporter, TESTDATA, TPKG
from gosrc.config import BuildSettings, ToolchainConfig
from gosrc.context import Context, default_to_getwd, import_package
from gosrc.errors import ImportNotFoundError
from gosrc.package import State


SETTINGS = BuildSettings(goroot="/opt/go", gopath="", goos="linux", goarch="amd64")
TOOLCHAIN = ToolchainConfig(importer=MapImporter("fmt", "strings", "testing"))


def test_default_to_getwd():
	assert default_to_getwd("", "/a", "/b") == "/a"
	assert default_to_getwd() == os.getcwd()


def test_import_by_module_path():
	ctx = Context(SETTINGS, source_dir=TPKG, toolchain=TOOLCHAIN)
	pkg = ctx.import_package("example.com/tpkg")
	assert pkg.name == "tpkg"
	assert pkg.dir == TPKG
	assert pkg.import_path == "example.com/tpkg"
	assert pkg.state is State.UNBUILT
	assert pkg.synopsis().startswith("Package tpkg")


def test_import_relative():
	ctx = Context.from_dir(TESTDATA, settings=SETTINGS, toolchain=TOOLCHAIN)
	pkg = ctx.import_package("./tpkg")
	assert pkg.dir == TPKG
	assert pkg.method_set("PublicStruct").len() == 4


def test_import_missing_raises_before_building():
	ctx = Context.from_dir(TESTDATA, settings=SETTINGS)
	with pytest.raises(ImportNotFoundError) as err:
		ctx.import_package("example.com/nowhere")
	assert "example.com/nowhere" in str(err.value)


def test_work_dir(monkeypatch):
	monkeypatch.chdir(TESTDATA)
	ctx = Context.from_work_dir(settings=SETTINGS, toolchain=TOOLCHAIN)
	assert os.path.realpath(ctx.source_dir) == os.path.realpath(TESTDATA)
	assert os.path.realpath(import_package("./tpkg").dir) == os.path.realpath(TPKG)


def test_from_standard():
	ctx = Context.from_standard(SETTINGS)
	assert ctx.settings.gopath == ""
	assert ctx.settings.goroot == "/opt/go"
	assert ctx.source_dir == os.path.join("/opt/go", "src")
	assert str(ctx) == "Context(/opt/go/src -> /opt/go)"


def test_builder_uses_context_config():
	ctx = Context(SETTINGS, source_dir=TPKG, toolchain=TOOLCHAIN)
	builder = ctx.builder()
	assert builder.config is TOOLCHAIN
	assert builder.settings is SETTINGS
	assert builder.importer(TPKG) is TOOLCHAIN.importer
