from __future__ import annotations

import enum
import unicodedata
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


def is_upper(ch: str) -> bool:
	return unicodedata.category(ch) == "Lu"


def is_lower(ch: str) -> bool:
	return unicodedata.category(ch) == "Ll"


def is_exported(name: str) -> bool:
	return bool(name) and is_upper(name[0])


def is_test(name: str, prefix: str) -> bool:
	"""Whether ``name`` is a ``go test`` style name for ``prefix``.

	``Test`` and ``TestFoo`` are, ``Testicular`` is not.
	"""
	if not name.startswith(prefix):
		return False
	if len(name) == len(prefix):
		return True
	return not is_lower(name[len(prefix)])


class Position(BaseModel):
	model_config = ConfigDict(frozen=True)

	filename: str = ""
	offset: int = 0
	line: int = 0
	column: int = 0

	def is_valid(self) -> bool:
		return self.line > 0

	def __str__(self) -> str:
		if not self.is_valid():
			return self.filename or "-"
		if self.filename:
			return f"{self.filename}:{self.line}:{self.column}"
		return f"{self.line}:{self.column}"


class PackageIdentity(BaseModel):
	"""A located package: where it lives and which files belong to it."""

	model_config = ConfigDict(frozen=True)

	import_path: str
	name: str
	dir: str
	root: str = ""
	goroot: bool = False
	module: str = ""
	go_files: List[str] = []
	cgo_files: List[str] = []
	ignored_go_files: List[str] = []
	test_go_files: List[str] = []
	xtest_go_files: List[str] = []
	c_files: List[str] = []
	cxx_files: List[str] = []
	m_files: List[str] = []
	h_files: List[str] = []
	s_files: List[str] = []
	swig_files: List[str] = []
	syso_files: List[str] = []
	imports: List[str] = []
	test_imports: List[str] = []


# Documentation model


class Value(BaseModel):
	doc: str = ""
	names: List[str] = []
	decl: str = ""
	order: int = 0


class DocFunc(BaseModel):
	doc: str = ""
	name: str
	decl: str = ""
	recv: str = ""
	orig: str = ""
	level: int = 0


class DocType(BaseModel):
	doc: str = ""
	name: str
	decl: str = ""
	consts: List[Value] = []
	vars: List[Value] = []
	funcs: List[DocFunc] = []
	methods: List[DocFunc] = []


class Note(BaseModel):
	position: Optional[Position] = None
	end: Optional[Position] = None
	uid: str
	body: str


class Example(BaseModel):
	name: str
	doc: str = ""
	code: str = ""
	output: str = ""
	unordered: bool = False
	empty_output: bool = False
	order: int = 0


class DocPackage(BaseModel):
	name: str
	import_path: str = ""
	doc: str = ""
	filenames: List[str] = []
	notes: Dict[str, List[Note]] = {}
	bugs: List[str] = []
	consts: List[Value] = []
	vars: List[Value] = []
	types: List[DocType] = []
	funcs: List[DocFunc] = []


# Type checked scope


class ObjectKind(str, enum.Enum):
	FUNC = "func"
	TYPE = "type"
	VAR = "var"
	CONST = "const"


class Param(BaseModel):
	name: str = ""
	type: str

	def __str__(self) -> str:
		return f"{self.name} {self.type}" if self.name else self.type


def _tuple_string(params: List[Param], variadic: bool = False) -> str:
	parts = []
	for i, p in enumerate(params):
		typ = p.type
		if variadic and i == len(params) - 1 and typ.startswith("[]"):
			typ = "..." + typ[2:]
		parts.append(f"{p.name} {typ}" if p.name else typ)
	return "(" + ", ".join(parts) + ")"


class Signature(BaseModel):
	params: List[Param] = []
	results: List[Param] = []
	variadic: bool = False
	type_params: List[Param] = []

	def params_string(self) -> str:
		return _tuple_string(self.params, self.variadic)

	def results_string(self) -> str:
		return _tuple_string(self.results)

	def suffix(self) -> str:
		"""Signature without the ``func`` keyword, as printed after a name."""
		out = ""
		if self.type_params:
			out += "[" + ", ".join(str(p) for p in self.type_params) + "]"
		out += self.params_string()
		if len(self.results) == 1 and not self.results[0].name:
			out += " " + self.results[0].type
		elif self.results:
			out += " " + self.results_string()
		return out

	def __str__(self) -> str:
		return "func" + self.suffix()


class Embedded(BaseModel):
	type_name: str
	pointer: bool = False
	package: Optional[str] = None


class Named(BaseModel):
	"""Shape of a declared type as needed for method set computation."""

	kind: str = "other"  # struct, interface, pointer or other
	underlying: str = ""
	type_params: List[Param] = []
	fields: List[str] = []
	embedded: List[Embedded] = []
	methods: List["Symbol"] = []
	interface_methods: List["Symbol"] = []


class Symbol(BaseModel):
	name: str
	kind: ObjectKind
	package: str = ""
	type: str = ""
	signature: Optional[Signature] = None
	recv: Optional[str] = None
	pointer_recv: bool = False
	value: Optional[str] = None
	alias: bool = False
	named: Optional[Named] = None
	position: Optional[Position] = None

	@property
	def exported(self) -> bool:
		return is_exported(self.name)

	def qualified_name(self) -> str:
		return f"{self.package}.{self.name}" if self.package else self.name

	def __str__(self) -> str:
		if self.kind == ObjectKind.FUNC:
			sig = self.signature.suffix() if self.signature is not None else "()"
			if self.recv:
				owner = f"{self.package}.{self.recv}" if self.package else self.recv
				if self.pointer_recv:
					owner = "*" + owner
				return f"func ({owner}).{self.name}{sig}"
			return f"func {self.qualified_name()}{sig}"
		if self.kind == ObjectKind.TYPE:
			sep = " = " if self.alias else " "
			return f"type {self.qualified_name()}{sep}{self.type}"
		return f"{self.kind.value} {self.qualified_name()} {self.type}".rstrip()


Named.model_rebuild()


class Function(BaseModel):
	"""A function or method symbol paired with its signature."""

	symbol: Symbol

	@property
	def name(self) -> str:
		return self.symbol.name

	@property
	def signature(self) -> Signature:
		return self.symbol.signature or Signature()

	def params(self) -> List[Param]:
		return list(self.signature.params)

	def results(self) -> List[Param]:
		return list(self.signature.results)

	def __str__(self) -> str:
		return str(self.symbol)


class MethodSet(BaseModel):
	"""Methods reachable from a named type through a value or pointer handle."""

	name: str
	obj: Symbol
	methods: Dict[str, Function] = {}

	def names(self) -> List[str]:
		return sorted(self.methods)

	def len(self) -> int:
		return len(self.methods)

	def __len__(self) -> int:
		return len(self.methods)


class PackageFacts(BaseModel):
	import_path: str
	name: str
	dir: str
	synopsis: str = ""
	files: List[str] = []
	constants: List[Value] = []
	variables: List[Value] = []
	functions: List[str] = []
	types: List[DocType] = []
	method_sets: Dict[str, List[str]] = {}
	notes: Dict[str, List[Note]] = {}
