"""Explicit configuration values for locating and analysing Go packages.

Nothing here is process-wide mutable state: a :class:`BuildSettings` describes
the Go installation and target platform (read from the environment when not
given), a :class:`ToolchainConfig` describes how the analysis pipeline runs.
Both are passed to the objects that need them.
"""

from __future__ import annotations

import enum
import os
import platform
import shutil
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ParseMode(enum.IntFlag):
	PACKAGE_CLAUSE_ONLY = 1
	IMPORTS_ONLY = 2
	PARSE_COMMENTS = 4
	ALL_ERRORS = 8


class DocMode(enum.IntFlag):
	ALL_DECLS = 1
	ALL_METHODS = 2


DEFAULT_PARSE_MODE = ParseMode.PARSE_COMMENTS
DEFAULT_DOC_MODE = DocMode(0)

_MACHINE_TO_GOARCH = {
	"x86_64": "amd64",
	"amd64": "amd64",
	"aarch64": "arm64",
	"arm64": "arm64",
	"i386": "386",
	"i686": "386",
	"x86": "386",
	"armv6l": "arm",
	"armv7l": "arm",
	"ppc64le": "ppc64le",
	"s390x": "s390x",
	"riscv64": "riscv64",
}


def _default_goroot() -> str:
	go = shutil.which("go")
	if go:
		# <goroot>/bin/go
		return os.path.dirname(os.path.dirname(os.path.realpath(go)))
	return "/usr/local/go"


def _default_gopath() -> str:
	return os.path.join(os.path.expanduser("~"), "go")


def _default_goos() -> str:
	return platform.system().lower() or "linux"


def _default_goarch() -> str:
	return _MACHINE_TO_GOARCH.get(platform.machine().lower(), "amd64")


class BuildSettings(BaseSettings):
	"""Go installation and target platform, overridable through ``GOROOT`` etc."""

	model_config = SettingsConfigDict(env_prefix="", extra="ignore", frozen=True, populate_by_name=True)

	goroot: str = Field(default_factory=_default_goroot)
	gopath: str = Field(default_factory=_default_gopath)
	goos: str = Field(default_factory=_default_goos)
	goarch: str = Field(default_factory=_default_goarch)
	cgo_enabled: bool = True
	build_tags: str = Field(default="", validation_alias=AliasChoices("build_tags", "GOSRC_BUILD_TAGS"))
	gomodcache: str = ""

	def tags(self) -> List[str]:
		return [t.strip() for t in self.build_tags.split(",") if t.strip()]

	def gopath_list(self) -> List[str]:
		return [p for p in self.gopath.split(os.pathsep) if p]

	def modcache_dir(self) -> str:
		"""GOMODCACHE, or pkg/mod under the first GOPATH entry; empty when neither is set."""
		if self.gomodcache:
			return self.gomodcache
		gopaths = self.gopath_list()
		return os.path.join(gopaths[0], "pkg", "mod") if gopaths else ""

	def src_roots(self) -> List[str]:
		"""GOROOT/src followed by every GOPATH/src, in search order."""
		roots = []
		if self.goroot:
			roots.append(os.path.join(self.goroot, "src"))
		for p in self.gopath_list():
			roots.append(os.path.join(p, "src"))
		return roots


class ToolchainConfig(BaseModel):
	"""How the parse, documentation and type check passes are run."""

	model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

	parse_mode: int = DEFAULT_PARSE_MODE
	doc_mode: int = DEFAULT_DOC_MODE
	# None selects a DefaultImporter over the builder's settings.
	importer: Optional[Any] = None
	annotate: bool = False

	@field_validator("parse_mode")
	@classmethod
	def _as_parse_mode(cls, value: int) -> ParseMode:
		return ParseMode(value)

	@field_validator("doc_mode")
	@classmethod
	def _as_doc_mode(cls, value: int) -> DocMode:
		return DocMode(value)
