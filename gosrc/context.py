"""Import Go packages as if from code living in a source directory."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .config import BuildSettings, ToolchainConfig
from .fs_scan import locate
from .package import Package
from .toolchain import ToolchainBuilder


logger = logging.getLogger(__name__)


def default_to_getwd(*dirs: str) -> str:
	for d in dirs:
		if d:
			return d
	try:
		return os.getcwd()
	except OSError:
		return "."


class Context:
	"""Where packages are searched for and how they are analysed.

	``source_dir`` plays the role of the importing package's directory: module
	and ``vendor/`` lookups start from it.
	"""

	def __init__(
		self,
		settings: Optional[BuildSettings] = None,
		source_dir: str = "",
		toolchain: Optional[ToolchainConfig] = None,
	) -> None:
		self.settings = settings or BuildSettings()
		self.source_dir = source_dir
		self.toolchain = toolchain or ToolchainConfig()

	@classmethod
	def from_dir(cls, source_dir: str, **kwargs) -> "Context":
		return cls(source_dir=source_dir, **kwargs)

	@classmethod
	def from_work_dir(cls, **kwargs) -> "Context":
		return cls.from_dir(default_to_getwd(), **kwargs)

	@classmethod
	def from_standard(cls, settings: Optional[BuildSettings] = None, **kwargs) -> "Context":
		"""Only the standard library is visible: no GOPATH, sources under GOROOT/src."""
		settings = (settings or BuildSettings()).model_copy(update={"gopath": ""})
		return cls(settings=settings, source_dir=os.path.join(settings.goroot, "src"), **kwargs)

	def builder(self) -> ToolchainBuilder:
		return ToolchainBuilder(self.toolchain, self.settings)

	def import_package(self, import_path: str) -> Package:
		"""Locate ``import_path``; raises ImportNotFoundError before any Package exists."""
		source_dir = default_to_getwd(self.source_dir)
		identity = locate(import_path, source_dir, self.settings)
		logger.debug("imported %s from %s", import_path, identity.dir)
		return Package(identity, self.builder())

	def __str__(self) -> str:
		return f"Context({self.source_dir} -> {self.settings.goroot})"


def import_package(import_path: str) -> Package:
	"""Shorthand for ``Context.from_work_dir().import_package(import_path)``."""
	return Context.from_work_dir().import_package(import_path)
