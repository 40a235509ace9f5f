"""Build the syntax, documentation and type views of one package directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .ast_parse import FileSet, SyntaxFile, SyntaxPackage, parse_dir
from .checker import AnnotationIndex, Checker, TypesPackage
from .config import BuildSettings, ToolchainConfig
from .docextract import new_doc
from .errors import GoSrcError, PackageNotFoundError
from .importer import DefaultImporter, Importer
from .model import DocPackage


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactBundle:
	"""Everything known about a package, built at once from the same files."""

	fset: FileSet
	syntax: SyntaxPackage
	doc: DocPackage
	types: TypesPackage
	info: Optional[AnnotationIndex]
	directory: str
	import_path: str

	def files(self) -> List[SyntaxFile]:
		return self.syntax.file_list()


class ToolchainBuilder:
	"""Runs parse, documentation and type check passes over a directory.

	Documentation extraction takes ownership of the syntax it is given and
	rewrites it, so the directory is parsed twice: once for the bundle's
	syntax and type check, once for the documentation model alone. The two
	parses are never shared.
	"""

	def __init__(self, config: Optional[ToolchainConfig] = None, settings: Optional[BuildSettings] = None) -> None:
		self.config = config or ToolchainConfig()
		self.settings = settings

	def importer(self, directory: str) -> Importer:
		if self.config.importer is not None:
			return self.config.importer
		return DefaultImporter(self.settings, source_dir=directory)

	def build(
		self,
		directory: str,
		package_name: str,
		import_path: str = "",
		file_filter: Optional[Callable[[str], bool]] = None,
	) -> ArtifactBundle:
		"""Build the bundle or raise the first failure; nothing partial escapes."""
		import_path = import_path or package_name
		try:
			return self._build(directory, package_name, import_path, file_filter)
		except GoSrcError as e:
			logger.warning("building %s in %s failed: %s", import_path, directory, e)
			raise

	def _build(
		self,
		directory: str,
		package_name: str,
		import_path: str,
		file_filter: Optional[Callable[[str], bool]],
	) -> ArtifactBundle:
		mode = self.config.parse_mode

		logger.debug("parsing %s", directory)
		fset = FileSet()
		pkgs = parse_dir(fset, directory, file_filter, mode)

		logger.debug("parsing %s for documentation", directory)
		doc_pkgs = parse_dir(FileSet(), directory, file_filter, mode)

		syntax = pkgs.get(package_name)
		doc_syntax = doc_pkgs.get(package_name)
		if syntax is None or doc_syntax is None:
			raise PackageNotFoundError(package_name, directory)

		logger.debug("extracting documentation for %s", import_path)
		doc = new_doc(doc_syntax, import_path, self.config.doc_mode)

		logger.debug("type checking %s", import_path)
		info = AnnotationIndex() if self.config.annotate else None
		types = Checker(self.importer(directory)).check(import_path, fset, syntax.file_list(), info)

		return ArtifactBundle(
			fset=fset,
			syntax=syntax,
			doc=doc,
			types=types,
			info=info,
			directory=directory,
			import_path=import_path,
		)

	def annotate(self, bundle: ArtifactBundle) -> AnnotationIndex:
		"""Annotation index over an already built bundle's syntax."""
		info = AnnotationIndex()
		Checker(self.importer(bundle.directory)).annotate(bundle.import_path, bundle.files(), info)
		return info
