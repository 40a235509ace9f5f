import os

import pytest

from gosrc.config import BuildSettings
from gosrc.errors import ImportNotFoundError
from gosrc.importer import DefaultImporter, default_package_name


LINUX = BuildSettings(goroot="", gopath="", goos="linux", goarch="amd64")


def test_default_package_name():
	assert default_package_name("fmt") == "fmt"
	assert default_package_name("example.com/lib/v2") == "lib"
	assert default_package_name("gopkg.in/yaml.v3") == "yaml"
	assert default_package_name("github.com/x/go-errors") == "errors"


def test_modcache_dir(tmp_path):
	assert LINUX.modcache_dir() == ""
	with_gopath = LINUX.model_copy(update={"gopath": str(tmp_path)})
	assert with_gopath.modcache_dir() == os.path.join(str(tmp_path), "pkg", "mod")
	explicit = with_gopath.model_copy(update={"gomodcache": str(tmp_path / "cache")})
	assert explicit.modcache_dir() == str(tmp_path / "cache")


def test_module_cache_lookup(tmp_path):
	cache = tmp_path / "cache"
	for version in ("v1.0.0", "v1.2.0"):
		pkg_dir = cache / "example.com" / "!acme" / f"lib@{version}" / "sub"
		pkg_dir.mkdir(parents=True)
		(pkg_dir / "sub.go").write_text("package sub\n")
	settings = BuildSettings(goroot="", gopath="", goos="linux", goarch="amd64", gomodcache=str(cache))
	importer = DefaultImporter(settings, source_dir=str(tmp_path))
	pkg = importer.import_("example.com/Acme/lib/sub")
	assert pkg.name == "sub"
	assert pkg.dir == str(cache / "example.com" / "!acme" / "lib@v1.2.0" / "sub")
	assert importer.import_("example.com/Acme/lib/sub") is pkg


def test_unresolved_import(tmp_path):
	importer = DefaultImporter(LINUX, source_dir=str(tmp_path))
	with pytest.raises(ImportNotFoundError):
		importer.import_("example.com/nowhere")
	assert importer.import_("strings").name == "strings"
	assert importer.import_("unsafe").name == "unsafe"
