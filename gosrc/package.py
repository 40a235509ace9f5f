"""The package facade: one lazily built, immutable view of a Go package."""

from __future__ import annotations

import enum
import logging
import os
import threading
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar, Union

from .ast_parse import FileSet, SyntaxPackage
from .checker import AnnotationIndex, TypesPackage
from .docextract import examples, synopsis
from .errors import NotInitializedError
from .methodset import MethodResolver, Reach
from .model import DocFunc, DocPackage, DocType, Example, Function, MethodSet, Note, PackageIdentity, Symbol, Value
from .toolchain import ArtifactBundle, ToolchainBuilder


logger = logging.getLogger(__name__)

T = TypeVar("T")


class State(enum.Enum):
	UNBUILT = "unbuilt"
	BUILDING = "building"
	READY = "ready"
	FAILED = "failed"


class OneShot(Generic[T]):
	"""Run ``fn`` at most once; every caller gets its value or its error.

	Callers arriving while the first one builds wait for it. A failure is
	recorded and re-raised to everyone, it is never retried.
	"""

	def __init__(self, fn: Callable[[], T]) -> None:
		self._fn = fn
		self._cond = threading.Condition()
		self._state = State.UNBUILT
		self._value: Optional[T] = None
		self._error: Optional[Exception] = None

	@property
	def state(self) -> State:
		with self._cond:
			return self._state

	def peek(self) -> Optional[T]:
		with self._cond:
			return self._value if self._state is State.READY else None

	def get(self) -> T:
		with self._cond:
			while self._state is State.BUILDING:
				self._cond.wait()
			# only a failed build leaves an error behind
			if self._error is not None:
				raise self._error
			if self._state is State.READY:
				return self._value  # type: ignore[return-value]
			self._state = State.BUILDING

		try:
			value = self._fn()
		except Exception as e:
			self._finish(State.FAILED, error=e)
			raise
		except BaseException:
			# interrupted, not failed: let the next caller try
			self._finish(State.UNBUILT)
			raise
		self._finish(State.READY, value=value)
		return value

	def _finish(self, state: State, value: Optional[T] = None, error: Optional[Exception] = None) -> None:
		with self._cond:
			self._state = state
			self._value = value
			self._error = error
			self._cond.notify_all()


class Package:
	"""A located Go package whose analysis runs on first use.

	Every accessor forces the build; the build happens once per instance and
	a failed build makes every accessor raise the same error. Construct a new
	Package to observe changes on disk.
	"""

	def __init__(self, identity: PackageIdentity, builder: Optional[ToolchainBuilder] = None) -> None:
		self.identity = identity
		self.builder = builder or ToolchainBuilder()
		self._bundle: OneShot[ArtifactBundle] = OneShot(self._build)
		self._annotations: OneShot[AnnotationIndex] = OneShot(self._annotate)

	@property
	def name(self) -> str:
		return self.identity.name

	@property
	def dir(self) -> str:
		return self.identity.dir

	@property
	def import_path(self) -> str:
		return self.identity.import_path

	def _file_filter(self) -> Optional[Callable[[str], bool]]:
		i = self.identity
		names = set(i.go_files + i.cgo_files + i.test_go_files + i.xtest_go_files)
		return names.__contains__ if names else None

	def _build(self) -> ArtifactBundle:
		logger.debug("initializing %s", self.import_path or self.dir)
		return self.builder.build(self.dir, self.name, self.import_path, self._file_filter())

	def _annotate(self) -> AnnotationIndex:
		bundle = self.init()
		if bundle.info is not None:
			return bundle.info
		return self.builder.annotate(bundle)

	def init(self) -> ArtifactBundle:
		return self._bundle.get()

	def ready(self) -> Optional[ArtifactBundle]:
		"""The bundle if the build already succeeded, without building."""
		return self._bundle.peek()

	@property
	def state(self) -> State:
		return self._bundle.state

	def synopsis(self) -> str:
		return synopsis(self.init().doc.doc)

	def to_syntax(self) -> Tuple[FileSet, SyntaxPackage]:
		bundle = self.init()
		return bundle.fset, bundle.syntax

	def to_doc(self) -> DocPackage:
		return self.init().doc.model_copy(deep=True)

	def to_types(self) -> TypesPackage:
		return self.init().types

	def to_types_with_annotations(self) -> Tuple[AnnotationIndex, TypesPackage]:
		bundle = self.init()
		return self._annotations.get(), bundle.types

	def docs(self) -> "Docs":
		self.init()
		return Docs(self)

	def files(self) -> "Files":
		return Files(self)

	def resolver(self) -> MethodResolver:
		return MethodResolver(self.init().types)

	def functions(self) -> List[Function]:
		return self.resolver().functions()

	def variables(self) -> List[Symbol]:
		return self.resolver().variables()

	def methods(self) -> Dict[str, MethodSet]:
		return self.resolver().methods()

	def method_set(self, name: str) -> MethodSet:
		return self.resolver().method_set(name)

	def reach(self, type_name: str, method: str) -> Reach:
		return self.resolver().reach(type_name, method)

	def __str__(self) -> str:
		return f"gosrc.Package{{{self.name}}}"

	def __repr__(self) -> str:
		return f"Package({self.import_path!r}, dir={self.dir!r}, state={self.state.value})"


class Docs:
	"""Documentation views of an initialized package; every result is a copy."""

	def __init__(self, package: Package) -> None:
		self.package = package

	def _doc(self) -> DocPackage:
		bundle = self.package.ready()
		if bundle is None:
			raise NotInitializedError(str(self.package.import_path or self.package.dir))
		return bundle.doc

	def constants(self) -> List[Value]:
		return [v.model_copy(deep=True) for v in self._doc().consts]

	def variables(self) -> List[Value]:
		return [v.model_copy(deep=True) for v in self._doc().vars]

	def functions(self) -> List[DocFunc]:
		return [f.model_copy(deep=True) for f in self._doc().funcs]

	def types(self) -> List[DocType]:
		return [t.model_copy(deep=True) for t in self._doc().types]

	def methods_by_type(self) -> Dict[str, List[DocFunc]]:
		return {t.name: list(t.methods) for t in self.types()}

	def examples(self) -> List[Example]:
		bundle = self.package.ready()
		if bundle is None:
			raise NotInitializedError(str(self.package.import_path or self.package.dir))
		return examples(bundle.files())

	def notes(self, tag: Optional[str] = None) -> Union[Dict[str, List[Note]], List[Note]]:
		"""Marker notes keyed by marker, or the notes of one ``tag`` in source order."""
		notes = self._doc().notes
		if tag is not None:
			return [n.model_copy(deep=True) for n in notes.get(tag, [])]
		return {k: [n.model_copy(deep=True) for n in ns] for k, ns in notes.items()}

	def bugs(self) -> List[str]:
		return list(self._doc().bugs)


class Files:
	def __init__(self, package: Package) -> None:
		self.package = package

	def names(self) -> List[str]:
		return [os.path.basename(p) for p in self.paths()]

	def paths(self) -> List[str]:
		return list(self.package.init().doc.filenames)

	def _join(self, names: List[str]) -> List[str]:
		return sorted(os.path.join(self.package.dir, n) for n in names)

	def source_paths(self) -> List[str]:
		"""Every non-test source file of the package, Go or not."""
		i = self.package.identity
		return self._join(i.go_files + i.cgo_files + i.c_files + i.cxx_files + i.m_files + i.s_files + i.swig_files)

	def test_paths(self) -> List[str]:
		i = self.package.identity
		return self._join(i.test_go_files + i.xtest_go_files)
