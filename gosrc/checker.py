"""Type checking of a parsed Go package.

The checker builds the package scope (every top-level const, var, type and
func), attaches methods to their receiver base types, verifies that every type
expression used in a declaration names something that exists and infers the
types of untyped package-level values. It then walks every value expression
and function body, reporting undefined names, unused imports and locals, and
basic literals that cannot be assigned to their declared type. When an
:class:`AnnotationIndex` is requested the same walk records definitions, uses
and expression types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from .ast_parse import (
	Field,
	FileSet,
	FuncDecl,
	GenDecl,
	ImportSpec,
	Node,
	SyntaxFile,
	TypeSpec,
	ValueSpec,
	base_type,
	field_list,
	named,
	result_list,
	signature_string,
	walk,
)
from .errors import Diagnostic, GoSrcError, TypeCheckError
from .importer import ImportedPackage, Importer, default_package_name
from .model import Embedded, Named, ObjectKind, Param, Signature, Symbol


logger = logging.getLogger(__name__)


UNIVERSE_TYPES = frozenset({
	"any", "bool", "byte", "comparable", "complex64", "complex128", "error", "float32",
	"float64", "int", "int8", "int16", "int32", "int64", "rune", "string", "uint", "uint8",
	"uint16", "uint32", "uint64", "uintptr",
})

UNIVERSE_VALUES = frozenset({
	"append", "cap", "clear", "close", "complex", "copy", "delete", "false", "imag", "iota",
	"len", "make", "max", "min", "new", "nil", "panic", "print", "println", "real", "recover",
	"true",
})

_INTEGERS = frozenset({
	"byte", "int", "int8", "int16", "int32", "int64", "rune", "uint", "uint8", "uint16",
	"uint32", "uint64", "uintptr",
})
_NUMERIC = _INTEGERS | {"float32", "float64", "complex64", "complex128"}
_BASIC = _NUMERIC | {"bool", "string"}

UNTYPED = {
	"int_literal": "untyped int",
	"float_literal": "untyped float",
	"imaginary_literal": "untyped complex",
	"rune_literal": "untyped rune",
	"interpreted_string_literal": "untyped string",
	"raw_string_literal": "untyped string",
	"true": "untyped bool",
	"false": "untyped bool",
	"iota": "untyped int",
	"nil": "untyped nil",
}

_DEFAULTS = {
	"untyped int": "int",
	"untyped float": "float64",
	"untyped complex": "complex128",
	"untyped rune": "rune",
	"untyped string": "string",
	"untyped bool": "bool",
}

_NUMERIC_RANK = ["untyped int", "untyped rune", "untyped float", "untyped complex"]

_COMPARISON = frozenset({"==", "!=", "<", "<=", ">", ">=", "&&", "||"})

EXPRESSIONS = frozenset({
	"identifier", "int_literal", "float_literal", "imaginary_literal", "rune_literal",
	"interpreted_string_literal", "raw_string_literal", "true", "false", "nil", "iota",
	"call_expression", "composite_literal", "func_literal", "unary_expression",
	"binary_expression", "parenthesized_expression", "selector_expression",
	"index_expression", "slice_expression", "type_assertion_expression",
	"type_conversion_expression",
})

_SCOPED_STATEMENTS = frozenset({
	"for_statement", "if_statement", "expression_switch_statement", "select_statement",
	"expression_case", "type_case", "default_case", "communication_case",
})

_LITERALS = frozenset(UNTYPED) - {"iota"}


def default_type(t: str) -> str:
	return _DEFAULTS.get(t, t)


def _literal_fits(kind: str, basic: str) -> bool:
	"""Whether a basic literal of untyped ``kind`` converts to the basic type ``basic``."""
	if kind == "untyped nil":
		return False
	if kind == "untyped string":
		return basic == "string"
	if kind == "untyped bool":
		return basic == "bool"
	return basic in _NUMERIC


def _truncated(kind: str, basic: str, text: str) -> bool:
	if kind != "untyped float" or basic not in _INTEGERS:
		return False
	try:
		return not float(text.replace("_", "")).is_integer()
	except ValueError:
		return False


def _same_node(a: Node, b: Node) -> bool:
	return (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def _combine(left: str, right: str) -> str:
	for t in (left, right):
		if t and not t.startswith("untyped"):
			return t
	if left in _NUMERIC_RANK and right in _NUMERIC_RANK:
		return max(left, right, key=_NUMERIC_RANK.index)
	return left or right


def element_type(t: str) -> str:
	"""Element type of a slice, array, map, pointer-to-array or string type string."""
	if t.startswith("*["):
		t = t[1:]
	if t.startswith("[]"):
		return t[2:]
	if t.startswith("["):
		depth = 0
		for i, ch in enumerate(t):
			if ch == "[":
				depth += 1
			elif ch == "]":
				depth -= 1
				if depth == 0:
					return t[i + 1:]
	if t.startswith("map["):
		depth = 0
		for i, ch in enumerate(t):
			if ch == "[":
				depth += 1
			elif ch == "]":
				depth -= 1
				if depth == 0:
					return t[i + 1:]
	if t in ("string", "untyped string"):
		return "byte"
	return ""


def key_type(t: str) -> str:
	if t.startswith("map["):
		depth = 0
		for i, ch in enumerate(t):
			if ch == "[":
				depth += 1
			elif ch == "]":
				depth -= 1
				if depth == 0:
					return t[4:i]
	if t.startswith(("[", "*[")) or t in ("string", "untyped string"):
		return "int"
	return ""


@dataclass(frozen=True)
class NodeKey:
	path: str
	start: int
	end: int

	@classmethod
	def of(cls, file: SyntaxFile, node: Node) -> "NodeKey":
		return cls(file.path, node.start_byte, node.end_byte)


class AnnotationIndex:
	"""Resolved types of expressions and the symbols identifiers define or use."""

	def __init__(self) -> None:
		self.types: Dict[NodeKey, str] = {}
		self.defs: Dict[NodeKey, Symbol] = {}
		self.uses: Dict[NodeKey, Symbol] = {}

	def type_of(self, file: SyntaxFile, node: Node) -> Optional[str]:
		return self.types.get(NodeKey.of(file, node))

	def object_of(self, file: SyntaxFile, node: Node) -> Optional[Symbol]:
		key = NodeKey.of(file, node)
		return self.defs.get(key) or self.uses.get(key)


class Scope:
	def __init__(self, parent: Optional["Scope"] = None) -> None:
		self.parent = parent
		self._objects: Dict[str, Symbol] = {}

	def lookup(self, name: str) -> Optional[Symbol]:
		return self._objects.get(name)

	def lookup_parent(self, name: str) -> Optional[Symbol]:
		s: Optional[Scope] = self
		while s is not None:
			sym = s._objects.get(name)
			if sym is not None:
				return sym
			s = s.parent
		return None

	def insert(self, sym: Symbol) -> Optional[Symbol]:
		"""Add ``sym``; returns the already declared symbol on conflict."""
		existing = self._objects.get(sym.name)
		if existing is not None:
			return existing
		self._objects[sym.name] = sym
		return None

	def names(self) -> List[str]:
		return sorted(self._objects)

	def __contains__(self, name: str) -> bool:
		return name in self._objects

	def __len__(self) -> int:
		return len(self._objects)


class TypesPackage:
	"""A type checked package: its identity, scope and resolved imports."""

	def __init__(self, path: str, name: str, scope: Scope, imports: List[ImportedPackage]) -> None:
		self._path = path
		self._name = name
		self._scope = scope
		self._imports = imports

	def path(self) -> str:
		return self._path

	def name(self) -> str:
		return self._name

	def scope(self) -> Scope:
		return self._scope

	def imports(self) -> List[ImportedPackage]:
		return list(self._imports)

	def __str__(self) -> str:
		return f'package {self._name} ("{self._path}")'


@dataclass
class _Value:
	file: SyntaxFile
	sym: Symbol
	type_node: Optional[Node]
	value: Optional[Node]
	index: int = 0  # result index when several names share one call


class _Run:
	def __init__(self, importer: Importer, path: str, files: List[SyntaxFile], info: Optional[AnnotationIndex]) -> None:
		self.importer = importer
		self.path = path
		self.files = files
		self.info = info
		self.name = files[0].name if files else ""
		self.scope = Scope()
		self.diagnostics: List[Diagnostic] = []
		self.file_imports: Dict[str, Dict[str, ImportedPackage]] = {}
		self.failed_imports: Dict[str, Set[str]] = {}
		self.dot_imports: Set[str] = set()
		self.imports: Dict[str, ImportedPackage] = {}
		self.values: Dict[str, _Value] = {}
		self._resolving: Set[str] = set()
		self._typed: Set[str] = set()
		self._name_nodes: Dict[str, Tuple[SyntaxFile, Node]] = {}
		self._import_specs: List[Tuple[SyntaxFile, ImportSpec, str]] = []
		self._used_imports: Set[Tuple[str, str]] = set()
		self._locals: List[Tuple[SyntaxFile, Node, Symbol]] = []
		self._used: Set[int] = set()
		self._results: List[List[str]] = []

	def error(self, file: SyntaxFile, node: Node, message: str) -> None:
		self.diagnostics.append(Diagnostic(message, file.position(node)))

	def run(self) -> TypesPackage:
		for f in self.files:
			self._collect_imports(f)

		types: List[Tuple[SyntaxFile, TypeSpec, Symbol]] = []
		funcs: List[Tuple[SyntaxFile, FuncDecl, Optional[Symbol]]] = []
		methods: List[Tuple[SyntaxFile, FuncDecl, Field]] = []
		for f in self.files:
			for decl in f.decls:
				if isinstance(decl, FuncDecl):
					if decl.recv is not None:
						methods.append((f, decl, decl.recv))
					else:
						funcs.append((f, decl, self._declare_func(f, decl)))
				elif decl.tok == "type":
					for spec in decl.specs:
						sym = self._declare_type(f, spec)
						if sym is not None:
							types.append((f, spec, sym))
				elif decl.tok in ("const", "var"):
					self._declare_values(f, decl)

		self._check_import_conflicts()
		for f, spec, sym in types:
			tparams = {n.name for p in spec.type_params for n in p.names}
			for p in spec.type_params:
				self.check_type(f, p.type, tparams)
			self.check_type(f, spec.type, tparams)
			self._shape(f, spec, sym)
		self._inherit_shapes(types)
		for f, decl, _ in funcs:
			self._check_signature(f, decl, set())
		for f, decl, recv in methods:
			self._declare_method(f, decl, recv)
		for v in list(self.values.values()):
			self.value_type(v.sym.name)
		self._walk()

		if self.diagnostics:
			raise TypeCheckError(self.diagnostics)
		return TypesPackage(self.path, self.name, self.scope, sorted(self.imports.values(), key=lambda p: p.path))

	# imports and declarations

	def _collect_imports(self, f: SyntaxFile) -> None:
		names: Dict[str, ImportedPackage] = {}
		self.file_imports[f.path] = names
		failed = self.failed_imports[f.path] = set()
		for spec in f.imports:
			try:
				pkg = self.importer.import_(spec.path)
			except GoSrcError as e:
				self.error(f, spec.node, f'could not import {spec.path} ({e})')
				failed.add(spec.name or default_package_name(spec.path))
				continue
			self.imports[pkg.path] = pkg
			local = spec.name or pkg.name
			if local == "_":
				continue
			if local == ".":
				self.dot_imports.add(f.path)
				continue
			if local in names:
				self.error(f, spec.node, f"{local} redeclared in this block")
				continue
			names[local] = pkg
			self._import_specs.append((f, spec, local))

	def _check_import_conflicts(self) -> None:
		for f in self.files:
			for local, pkg in self.file_imports[f.path].items():
				if local in self.scope and local in self._name_nodes:
					file, node = self._name_nodes[local]
					self.error(file, node, f"{local} already declared through import of package {pkg.name} (\"{pkg.path}\")")

	def _declare(self, f: SyntaxFile, node: Node, sym: Symbol) -> Optional[Symbol]:
		if sym.name == "_":
			return None
		existing = self.scope.insert(sym)
		if existing is not None:
			self.error(f, node, f"{sym.name} redeclared in this block")
			return None
		self._name_nodes[sym.name] = (f, node)
		return sym

	def _new_symbol(self, f: SyntaxFile, node: Node, name: str, kind: ObjectKind, **kw) -> Symbol:
		return Symbol(name=name, kind=kind, package=self.name, position=f.position(node), **kw)

	def signature(self, f: SyntaxFile, type_params: List[Field], params: List[Field], results: List[Field]) -> Signature:
		def expand(fields: List[Field]) -> List[Param]:
			out = []
			for fld in fields:
				typ = f.type_string(fld.type)
				if fld.variadic:
					typ = "[]" + typ
				if fld.names:
					out.extend(Param(name=n.name, type=typ) for n in fld.names)
				else:
					out.append(Param(type=typ))
			return out

		return Signature(
			params=expand(params),
			results=expand(results),
			variadic=bool(params) and params[-1].variadic,
			type_params=expand(type_params),
		)

	def _declare_func(self, f: SyntaxFile, decl: FuncDecl) -> Optional[Symbol]:
		name = decl.name.name
		if name == "init" or (name == "main" and self.name == "main"):
			if decl.params or decl.results or decl.type_params:
				self.error(f, decl.name.node, f"func {name} must have no arguments and no return values")
			if name == "init":
				return None
		sym = self._new_symbol(
			f, decl.name.node, name, ObjectKind.FUNC,
			signature=self.signature(f, decl.type_params, decl.params, decl.results),
		)
		sym.type = str(sym.signature)
		return self._declare(f, decl.name.node, sym)

	def _declare_type(self, f: SyntaxFile, spec: TypeSpec) -> Optional[Symbol]:
		sym = self._new_symbol(
			f, spec.name.node, spec.name.name, ObjectKind.TYPE,
			type=f.type_string(spec.type),
			alias=spec.alias,
			named=Named(type_params=self.signature(f, spec.type_params, [], []).type_params),
		)
		return self._declare(f, spec.name.node, sym)

	def _declare_values(self, f: SyntaxFile, decl: GenDecl) -> None:
		kind = ObjectKind.CONST if decl.tok == "const" else ObjectKind.VAR
		last: Optional[ValueSpec] = None
		for spec in decl.specs:
			if not isinstance(spec, ValueSpec):
				continue
			type_node, values = spec.type, spec.values
			if kind == ObjectKind.CONST:
				if not values and last is not None:
					# iota continuation repeats the previous type and expressions
					type_node, values = last.type, last.values
				else:
					last = spec
				if not values:
					self.error(f, spec.node, "missing init expr for const declaration")
			for i, ident in enumerate(spec.names):
				sym = self._new_symbol(f, ident.node, ident.name, kind)
				if kind == ObjectKind.CONST and i < len(values):
					sym.value = f.text(values[i])
				if not self._declare(f, ident.node, sym):
					continue
				if len(values) == len(spec.names):
					self.values[ident.name] = _Value(f, sym, type_node, values[i])
				elif len(values) == 1:
					self.values[ident.name] = _Value(f, sym, type_node, values[0], index=i)
				else:
					self.values[ident.name] = _Value(f, sym, type_node, None)

	def _declare_method(self, f: SyntaxFile, decl: FuncDecl, recv: Field) -> None:
		base, pointer = base_type(recv.type)
		tparams = self._receiver_type_params(f, recv.type)
		self._check_signature(f, decl, tparams)
		if base is None or base.type != "type_identifier":
			if base is not None and base.type == "qualified_type":
				self._use_package(f, base.child_by_field_name("package"))
			self.error(f, recv.type or decl.node, "cannot define new methods on non-local type")
			return
		owner = f.text(base)
		sym = self.scope.lookup(owner)
		if sym is None and owner in UNIVERSE_TYPES:
			self.error(f, base, f"cannot define new methods on non-local type {owner}")
			return
		if sym is None:
			self.error(f, base, f"undefined: {owner}")
			return
		named_type = sym.named
		if sym.kind != ObjectKind.TYPE or named_type is None:
			self.error(f, base, f"{owner} is not a type")
			return
		if named_type.kind == "interface" or sym.type.startswith("*"):
			self.error(f, base, f"invalid receiver type {owner} (pointer or interface type)")
			return
		name = decl.name.name
		if name == "_":
			return
		if any(m.name == name for m in named_type.methods):
			self.error(f, decl.name.node, f"method {owner}.{name} already declared")
			return
		if named_type.kind == "struct" and name in named_type.fields:
			self.error(f, decl.name.node, f"field and method with the same name {name}")
			return
		method = self._new_symbol(
			f, decl.name.node, name, ObjectKind.FUNC,
			signature=self.signature(f, decl.type_params, decl.params, decl.results),
			recv=owner,
			pointer_recv=pointer,
		)
		method.type = str(method.signature)
		named_type.methods.append(method)

	def _receiver_type_params(self, f: SyntaxFile, node: Optional[Node]) -> Set[str]:
		out: Set[str] = set()
		if node is None:
			return out
		for n in walk(node):
			if n.type == "type_arguments":
				out.update(f.text(a) for a in walk(n) if a.type in ("type_identifier", "identifier"))
		return out

	def _check_signature(self, f: SyntaxFile, decl: FuncDecl, tparams: Set[str]) -> None:
		tparams = tparams | {n.name for p in decl.type_params for n in p.names}
		for fld in decl.type_params + decl.params + decl.results:
			self.check_type(f, fld.type, tparams)

	# types

	def check_type(self, f: SyntaxFile, node: Optional[Node], tparams: Set[str]) -> None:
		"""Report identifiers in a type expression that do not denote types."""
		if node is None:
			return
		stack = [node]
		while stack:
			n = stack.pop()
			if n.type == "type_identifier":
				self._check_type_name(f, n, tparams)
			elif n.type == "qualified_type":
				pkg = n.child_by_field_name("package")
				if pkg is not None and not self._use_package(f, pkg):
					self.error(f, pkg, f"undefined: {f.text(pkg)}")
			elif n.type == "array_type":
				length = n.child_by_field_name("length")
				if length is not None:
					self._visit(f, length, self.scope)
				elem = n.child_by_field_name("element")
				if elem is not None:
					stack.append(elem)
			else:
				stack.extend(named(n))

	def _check_type_name(self, f: SyntaxFile, node: Node, tparams: Set[str]) -> None:
		name = f.text(node)
		if name in tparams or name == "_":
			return
		sym = self.scope.lookup(name)
		if sym is not None:
			if sym.kind != ObjectKind.TYPE:
				self.error(f, node, f"{name} is not a type")
			return
		if name in UNIVERSE_TYPES or f.path in self.dot_imports:
			return
		self.error(f, node, f"undefined: {name}")

	def _use_package(self, f: SyntaxFile, node: Optional[Node]) -> bool:
		"""Mark the import ``node`` names as used; False when the file imports no such package."""
		if node is None:
			return True
		name = f.text(node)
		if name in self.file_imports.get(f.path, {}):
			self._used_imports.add((f.path, name))
			return True
		return name in self.failed_imports.get(f.path, set())

	def _shape(self, f: SyntaxFile, spec: TypeSpec, sym: Symbol) -> None:
		named_type = sym.named
		if named_type is None:
			return
		node = spec.type
		while node is not None and node.type == "parenthesized_type":
			node = named(node)[0] if named(node) else None
		named_type.underlying = f.type_string(spec.type)
		if node is None:
			return
		if node.type == "struct_type":
			named_type.kind = "struct"
			body = next((c for c in named(node) if c.type == "field_declaration_list"), None)
			for fld in field_list(f.source, body):
				if not fld.embedded:
					named_type.fields.extend(n.name for n in fld.names)
					continue
				base, pointer = base_type(fld.type)
				if base is None:
					continue
				if base.type == "qualified_type":
					type_name = f.text(base.child_by_field_name("name"))
					package = f.text(base.child_by_field_name("package"))
				else:
					type_name, package = f.text(base), None
				named_type.fields.append(type_name)
				named_type.embedded.append(Embedded(type_name=type_name, pointer=pointer or fld.pointer, package=package))
		elif node.type == "interface_type":
			named_type.kind = "interface"
			for elem in named(node):
				if elem.type in ("method_elem", "method_spec"):
					name_node = elem.child_by_field_name("name")
					params = field_list(f.source, elem.child_by_field_name("parameters"))
					result = elem.child_by_field_name("result")
					method = self._new_symbol(
						f, name_node, f.text(name_node), ObjectKind.FUNC,
						signature=self.signature(f, [], params, result_list(f.source, result)),
						recv=sym.name,
					)
					method.type = str(method.signature)
					named_type.interface_methods.append(method)
					continue
				kids = named(elem) if elem.type != "type_identifier" else [elem]
				if len(kids) == 1 and kids[0].type in ("type_identifier", "qualified_type"):
					k = kids[0]
					if k.type == "qualified_type":
						named_type.embedded.append(Embedded(
							type_name=f.text(k.child_by_field_name("name")),
							package=f.text(k.child_by_field_name("package")),
						))
					else:
						named_type.embedded.append(Embedded(type_name=f.text(k)))
		elif node.type == "pointer_type":
			named_type.kind = "pointer"
		elif node.type == "type_identifier":
			named_type.kind = "defined"

	def _inherit_shapes(self, types: List[Tuple[SyntaxFile, TypeSpec, Symbol]]) -> None:
		"""``type T U`` takes U's structure and ``type A = B`` shares B's."""
		for _, spec, sym in types:
			seen = {sym.name}
			target = sym
			while target.named is not None and target.named.kind == "defined":
				nxt = self.scope.lookup(target.named.underlying)
				if nxt is None or nxt.kind != ObjectKind.TYPE or nxt.name in seen:
					break
				seen.add(nxt.name)
				target = nxt
			if target is sym or target.named is None or sym.named is None:
				continue
			if sym.alias:
				sym.named = target.named
				continue
			src = target.named
			sym.named.kind = src.kind if src.kind != "defined" else "other"
			sym.named.fields = list(src.fields)
			sym.named.embedded = list(src.embedded)
			sym.named.interface_methods = list(src.interface_methods)
		for _, _, sym in types:
			if sym.named is not None and sym.named.kind == "defined":
				sym.named.kind = "other"

	# values

	def value_type(self, name: str) -> str:
		v = self.values.get(name)
		if v is None:
			return ""
		if name in self._typed or name in self._resolving:
			return v.sym.type
		self._resolving.add(name)
		try:
			if v.type_node is not None:
				t = v.file.type_string(v.type_node)
			elif v.value is not None:
				t = self._value_expr_type(v, v.value)
				if v.sym.kind == ObjectKind.VAR:
					t = default_type(t)
			else:
				t = ""
			v.sym.type = t
		finally:
			self._resolving.discard(name)
			self._typed.add(name)
		return v.sym.type

	def _value_expr_type(self, v: _Value, value: Node) -> str:
		if v.index and value.type == "call_expression":
			results = self._call_results(v.file, value, self.scope)
			return results[v.index].type if v.index < len(results) else ""
		t = self.expr_type(v.file, value, self.scope)
		if t.startswith("(") and value.type == "call_expression":
			results = self._call_results(v.file, value, self.scope)
			return results[0].type if results else ""
		return t

	def _ensure_typed(self, sym: Symbol) -> None:
		v = self.values.get(sym.name)
		if v is not None and v.sym is sym:
			self.value_type(sym.name)

	def expr_type(self, f: SyntaxFile, node: Node, scope: Scope) -> str:
		if self.info is not None:
			key = NodeKey.of(f, node)
			cached = self.info.types.get(key)
			if cached is not None:
				return cached
		return self._expr_type(f, node, scope)

	def _expr_type(self, f: SyntaxFile, node: Node, scope: Scope) -> str:
		k = node.type
		if k in UNTYPED:
			return UNTYPED[k]
		if k == "identifier":
			sym = scope.lookup_parent(f.text(node))
			if sym is None:
				return ""
			if sym.kind in (ObjectKind.VAR, ObjectKind.CONST):
				self._ensure_typed(sym)
				return sym.type
			if sym.kind == ObjectKind.FUNC and sym.signature is not None:
				return str(sym.signature)
			return ""
		if k == "parenthesized_expression":
			kids = named(node)
			return self.expr_type(f, kids[0], scope) if kids else ""
		if k == "composite_literal":
			return f.type_string(node.child_by_field_name("type"))
		if k == "func_literal":
			return "func" + signature_string(
				f.source, node.child_by_field_name("parameters"), node.child_by_field_name("result"))
		if k in ("type_conversion_expression", "type_assertion_expression"):
			return f.type_string(node.child_by_field_name("type"))
		if k == "unary_expression":
			op = node.child_by_field_name("operator")
			operand = node.child_by_field_name("operand")
			inner = self.expr_type(f, operand, scope) if operand is not None else ""
			opt = f.text(op) if op is not None else ""
			if opt == "&":
				return "*" + default_type(inner) if inner else ""
			if opt == "*":
				return inner[1:] if inner.startswith("*") else ""
			if opt == "<-":
				for prefix in ("<-chan ", "chan "):
					if inner.startswith(prefix):
						return inner[len(prefix):]
				return ""
			return inner
		if k == "binary_expression":
			op = node.child_by_field_name("operator")
			opt = f.text(op) if op is not None else ""
			if opt in _COMPARISON:
				return "untyped bool"
			left = node.child_by_field_name("left")
			right = node.child_by_field_name("right")
			lt = self.expr_type(f, left, scope) if left is not None else ""
			if opt in ("<<", ">>"):
				return lt
			rt = self.expr_type(f, right, scope) if right is not None else ""
			return _combine(lt, rt)
		if k == "call_expression":
			return self._call_type(f, node, scope)
		if k == "index_expression":
			operand = node.child_by_field_name("operand")
			return element_type(default_type(self.expr_type(f, operand, scope))) if operand is not None else ""
		if k == "slice_expression":
			operand = node.child_by_field_name("operand")
			t = default_type(self.expr_type(f, operand, scope)) if operand is not None else ""
			if t.startswith("[") and not t.startswith("[]"):
				return "[]" + element_type(t)
			return t
		if k == "selector_expression":
			return self._selector_type(f, node, scope)
		return ""

	def _named_of(self, type_string: str) -> Optional[Symbol]:
		sym = self.scope.lookup(type_string.lstrip("*"))
		if sym is not None and sym.kind == ObjectKind.TYPE:
			return sym
		return None

	def _selector_type(self, f: SyntaxFile, node: Node, scope: Scope) -> str:
		operand = node.child_by_field_name("operand")
		field_node = node.child_by_field_name("field")
		if operand is None or field_node is None:
			return ""
		if operand.type == "identifier" and scope.lookup_parent(f.text(operand)) is None:
			return ""  # package qualified or unresolved
		owner = self._named_of(self.expr_type(f, operand, scope))
		if owner is None or owner.named is None:
			return ""
		name = f.text(field_node)
		for m in owner.named.methods + owner.named.interface_methods:
			if m.name == name and m.signature is not None:
				return str(m.signature)
		return ""

	def _call_results(self, f: SyntaxFile, node: Node, scope: Scope) -> List[Param]:
		fn = node.child_by_field_name("function")
		if fn is None:
			return []
		sig: Optional[Signature] = None
		if fn.type == "identifier":
			sym = scope.lookup_parent(f.text(fn))
			if sym is not None and sym.kind == ObjectKind.FUNC:
				sig = sym.signature
		elif fn.type == "selector_expression":
			operand = fn.child_by_field_name("operand")
			field_node = fn.child_by_field_name("field")
			if operand is not None and field_node is not None:
				owner = self._named_of(self.expr_type(f, operand, scope))
				if owner is not None and owner.named is not None:
					name = f.text(field_node)
					for m in owner.named.methods + owner.named.interface_methods:
						if m.name == name:
							sig = m.signature
		return list(sig.results) if sig is not None else []

	def _call_type(self, f: SyntaxFile, node: Node, scope: Scope) -> str:
		fn = node.child_by_field_name("function")
		args_node = node.child_by_field_name("arguments")
		args = named(args_node) if args_node is not None else []
		if fn is not None and fn.type == "identifier":
			name = f.text(fn)
			sym = scope.lookup_parent(name)
			if sym is not None and sym.kind == ObjectKind.TYPE:
				return name
			if sym is None:
				if name in UNIVERSE_TYPES:
					return name
				if name in ("len", "cap", "copy"):
					return "int"
				if name == "new" and args:
					return "*" + f.type_string(args[0])
				if name == "make" and args:
					return f.type_string(args[0])
				if name == "append" and args:
					return default_type(self.expr_type(f, args[0], scope))
				if name == "complex":
					return "complex128"
				if name in ("real", "imag"):
					return "float64"
				if name in ("min", "max") and args:
					t = ""
					for a in args:
						t = _combine(t, self.expr_type(f, a, scope))
					return t
				if name == "recover":
					return "any"
				return ""
		results = self._call_results(f, node, scope)
		if len(results) == 1:
			return results[0].type
		if results:
			return "(" + ", ".join(str(r) for r in results) + ")"
		return ""

	# bodies and value expressions

	def _walk(self) -> None:
		for f in self.files:
			for decl in f.decls:
				if isinstance(decl, FuncDecl):
					self._walk_func(f, decl)
				elif decl.tok == "type":
					for spec in decl.specs:
						if isinstance(spec, TypeSpec):
							sym = self.scope.lookup(spec.name.name)
							if sym is not None:
								self._define(f, spec.name.node, sym)
							self._annotate_types(f, spec.type)
				elif decl.tok in ("const", "var"):
					self._walk_values(f, decl)
		for f, node, sym in self._locals:
			if id(sym) not in self._used:
				self.error(f, node, f"declared and not used: {sym.name}")
		for f, spec, local in self._import_specs:
			if (f.path, local) in self._used_imports or spec.path == "C":
				continue
			if spec.name:
				self.error(f, spec.node, f'"{spec.path}" imported as {local} and not used')
			else:
				self.error(f, spec.node, f'"{spec.path}" imported and not used')

	def _define(self, f: SyntaxFile, node: Node, sym: Symbol) -> None:
		if self.info is not None:
			self.info.defs[NodeKey.of(f, node)] = sym

	def _walk_values(self, f: SyntaxFile, decl: GenDecl) -> None:
		context = "constant declaration" if decl.tok == "const" else "variable declaration"
		for spec in decl.specs:
			if not isinstance(spec, ValueSpec):
				continue
			for ident in spec.names:
				sym = self.scope.lookup(ident.name)
				if sym is not None:
					self._define(f, ident.node, sym)
			self.check_type(f, spec.type, set())
			self._annotate_types(f, spec.type)
			for value in spec.values:
				self._visit(f, value, self.scope)
			if spec.type is not None:
				target = f.type_string(spec.type)
				self._check_assignable(f, spec.values, [target] * len(spec.values), self.scope, context)

	def _annotate_types(self, f: SyntaxFile, node: Optional[Node]) -> None:
		if self.info is None or node is None:
			return
		self.info.types[NodeKey.of(f, node)] = f.type_string(node)
		for n in walk(node):
			if n.type == "type_identifier":
				sym = self.scope.lookup(f.text(n))
				if sym is not None and sym.kind == ObjectKind.TYPE:
					self.info.uses[NodeKey.of(f, n)] = sym

	def _walk_func(self, f: SyntaxFile, decl: FuncDecl) -> None:
		scope = Scope(self.scope)
		if decl.recv is None:
			sym = self.scope.lookup(decl.name.name)
		else:
			base, _ = base_type(decl.recv.type)
			owner = self.scope.lookup(f.text(base)) if base is not None else None
			sym = None
			if owner is not None and owner.named is not None:
				sym = next((m for m in owner.named.methods if m.name == decl.name.name), None)
			for name in sorted(self._receiver_type_params(f, decl.recv.type)):
				scope.insert(self._new_symbol(f, decl.recv.type or decl.node, name, ObjectKind.TYPE))
		if sym is not None:
			self._define(f, decl.name.node, sym)
		for p in decl.type_params:
			for ident in p.names:
				scope.insert(self._new_symbol(f, ident.node, ident.name, ObjectKind.TYPE))
		fields = ([decl.recv] if decl.recv is not None else []) + decl.params + decl.results
		for fld in fields:
			self._annotate_types(f, fld.type)
			self._declare_params(f, fld, scope)
		if decl.body is not None:
			self._results.append(self._result_types(f, decl.results))
			self._visit(f, decl.body, scope)
			self._results.pop()

	def _declare_params(self, f: SyntaxFile, fld: Field, scope: Scope) -> None:
		typ = f.type_string(fld.type)
		if fld.variadic:
			typ = "[]" + typ
		for ident in fld.names:
			local = self._new_symbol(f, ident.node, ident.name, ObjectKind.VAR, type=typ)
			self._define(f, ident.node, local)
			if ident.name != "_":
				scope.insert(local)

	def _result_types(self, f: SyntaxFile, results: List[Field]) -> List[str]:
		out: List[str] = []
		for fld in results:
			out.extend([f.type_string(fld.type)] * max(1, len(fld.names)))
		return out

	def _define_locals(self, f: SyntaxFile, idents: List[Node], types: List[str], scope: Scope, track: bool = True) -> None:
		for i, ident in enumerate(idents):
			if ident.type != "identifier":
				continue
			name = f.text(ident)
			if name == "_":
				continue
			existing = scope.lookup(name)
			if existing is not None:
				# := with an already declared name assigns to it
				if self.info is not None:
					self.info.uses[NodeKey.of(f, ident)] = existing
				continue
			sym = self._new_symbol(f, ident, name, ObjectKind.VAR, type=types[i] if i < len(types) else "")
			scope.insert(sym)
			self._define(f, ident, sym)
			if track:
				self._locals.append((f, ident, sym))

	def _rhs_types(self, f: SyntaxFile, values: List[Node], count: int, scope: Scope) -> List[str]:
		if len(values) == 1 and count > 1 and values[0].type == "call_expression":
			return [r.type for r in self._call_results(f, values[0], scope)]
		if len(values) == 1 and count == 2 and values[0].type in ("index_expression", "type_assertion_expression", "unary_expression"):
			return [default_type(self.expr_type(f, values[0], scope)), "bool"]
		return [default_type(self.expr_type(f, v, scope)) for v in values]

	def _resolve(self, f: SyntaxFile, node: Node, scope: Scope, use: bool = True) -> None:
		name = f.text(node)
		if name == "_":
			return
		sym = scope.lookup_parent(name)
		if sym is not None:
			if use:
				self._used.add(id(sym))
			if self.info is not None:
				self.info.uses.setdefault(NodeKey.of(f, node), sym)
			return
		if self._use_package(f, node):
			return
		if name in UNIVERSE_VALUES or name in UNIVERSE_TYPES or f.path in self.dot_imports:
			return
		self.error(f, node, f"undefined: {name}")

	def _resolve_type(self, f: SyntaxFile, node: Node, scope: Scope) -> None:
		name = f.text(node)
		sym = scope.lookup_parent(name)
		if sym is not None:
			if sym.kind != ObjectKind.TYPE:
				self.error(f, node, f"{name} is not a type")
			elif self.info is not None:
				self.info.uses[NodeKey.of(f, node)] = sym
			return
		if name == "_" or name in UNIVERSE_TYPES or f.path in self.dot_imports:
			return
		self.error(f, node, f"undefined: {name}")

	def _assign_target(self, f: SyntaxFile, node: Node, scope: Scope) -> None:
		"""Visit the left side of an assignment; a plain name there is not a use."""
		if node.type == "identifier":
			self._resolve(f, node, scope, use=False)
			self._record(f, node, scope)
		else:
			self._visit(f, node, scope)

	def _basic_of(self, type_string: str, scope: Scope) -> Optional[str]:
		seen: Set[str] = set()
		while type_string and type_string not in seen:
			if type_string in _BASIC:
				return type_string
			seen.add(type_string)
			sym = scope.lookup_parent(type_string)
			if sym is None or sym.kind != ObjectKind.TYPE:
				return None
			type_string = sym.type
		return None

	def _check_assignable(self, f: SyntaxFile, values: List[Node], targets: List[str], scope: Scope, context: str) -> None:
		"""Report basic literals among ``values`` that do not fit their target type."""
		if len(values) != len(targets):
			return
		for value, target in zip(values, targets):
			lit = value
			while lit.type == "parenthesized_expression" and named(lit):
				lit = named(lit)[0]
			if lit.type not in _LITERALS:
				continue
			basic = self._basic_of(target, scope)
			if basic is None:
				continue
			kind = UNTYPED[lit.type]
			text = f.text(value)
			if kind == "untyped nil":
				self.error(f, value, f"cannot use nil as {target} value in {context}")
			elif not _literal_fits(kind, basic):
				self.error(f, value, f"cannot use {text} ({kind} constant) as {target} value in {context}")
			elif _truncated(kind, basic, f.text(lit)):
				self.error(f, value, f"cannot use {text} ({kind} constant) as {target} value in {context} (truncated)")

	def _visit(self, f: SyntaxFile, node: Node, scope: Scope) -> None:
		t = node.type
		if t == "type_switch_statement":
			self._visit_type_switch(f, node, scope)
			return
		if t == "block" or t in _SCOPED_STATEMENTS:
			inner = Scope(scope)
			for c in named(node):
				self._visit(f, c, inner)
			return
		if t == "func_literal":
			inner = Scope(scope)
			params = field_list(f.source, node.child_by_field_name("parameters"))
			results = result_list(f.source, node.child_by_field_name("result"))
			for fld in params + results:
				if fld.type is not None:
					self._visit(f, fld.type, scope)
				self._declare_params(f, fld, inner)
			body = node.child_by_field_name("body")
			if body is not None:
				self._results.append(self._result_types(f, results))
				self._visit(f, body, inner)
				self._results.pop()
			self._record(f, node, scope)
			return
		if t in ("parameter_declaration", "variadic_parameter_declaration"):
			# parameter names of a func type or interface method declare nothing here
			type_node = node.child_by_field_name("type")
			if type_node is not None:
				self._visit(f, type_node, scope)
			return
		if t == "short_var_declaration":
			left = node.child_by_field_name("left")
			right = node.child_by_field_name("right")
			values = named(right) if right is not None else []
			for v in values:
				self._visit(f, v, scope)
			idents = named(left) if left is not None else []
			self._define_locals(f, idents, self._rhs_types(f, values, len(idents), scope), scope)
			return
		if t == "receive_statement":
			left = node.child_by_field_name("left")
			right = node.child_by_field_name("right")
			if right is not None:
				self._visit(f, right, scope)
			if left is not None:
				if any(c.type == ":=" for c in node.children):
					received = default_type(self.expr_type(f, right, scope)) if right is not None else ""
					self._define_locals(f, named(left), [received, "bool"], scope)
				else:
					for target in named(left):
						self._assign_target(f, target, scope)
			return
		if t == "range_clause":
			left = node.child_by_field_name("left")
			right = node.child_by_field_name("right")
			if right is not None:
				self._visit(f, right, scope)
			if left is not None:
				ranged = default_type(self.expr_type(f, right, scope)) if right is not None else ""
				idents = named(left)
				if any(c.type == ":=" for c in node.children):
					self._define_locals(f, idents, [key_type(ranged), element_type(ranged)], scope)
				else:
					for target in idents:
						self._assign_target(f, target, scope)
			return
		if t in ("var_spec", "const_spec"):
			type_node = node.child_by_field_name("type")
			value = node.child_by_field_name("value")
			values = named(value) if value is not None else []
			for v in values:
				self._visit(f, v, scope)
			names = node.children_by_field_name("name")
			if type_node is not None:
				self._visit(f, type_node, scope)
				self._annotate_types(f, type_node)
				types = [f.type_string(type_node)] * len(names)
				context = "variable declaration" if t == "var_spec" else "constant declaration"
				self._check_assignable(f, values, types[:len(values)], scope, context)
			elif t == "var_spec":
				types = self._rhs_types(f, values, len(names), scope)
			else:
				types = [self.expr_type(f, v, scope) for v in values]
			# unused local constants are allowed
			self._define_locals(f, names, types, scope, track=t == "var_spec")
			return
		if t in ("type_spec", "type_alias"):
			name = node.child_by_field_name("name")
			type_node = node.child_by_field_name("type")
			if name is not None:
				local = self._new_symbol(f, name, f.text(name), ObjectKind.TYPE, type=f.type_string(type_node))
				scope.insert(local)
				self._define(f, name, local)
			if type_node is not None:
				self._visit(f, type_node, scope)
			return
		if t == "assignment_statement":
			left = node.child_by_field_name("left")
			right = node.child_by_field_name("right")
			if right is not None:
				self._visit(f, right, scope)
			for target in (named(left) if left is not None else []):
				self._assign_target(f, target, scope)
			return
		if t in ("inc_statement", "dec_statement"):
			for target in named(node):
				self._assign_target(f, target, scope)
			return
		if t == "return_statement" and self._results:
			kids = named(node)
			values = named(kids[0]) if kids and kids[0].type == "expression_list" else kids
			self._check_assignable(f, values, self._results[-1], scope, "return statement")
		if t == "keyed_element":
			kids = named(node)
			if len(kids) == 2:
				key = kids[0]
				while key.type == "literal_element" and len(named(key)) == 1:
					key = named(key)[0]
				if key.type in ("identifier", "field_identifier"):
					# a bare key names a struct field unless it resolves in scope
					if key.type == "identifier" and scope.lookup_parent(f.text(key)) is not None:
						self._visit(f, key, scope)
				else:
					self._visit(f, kids[0], scope)
				self._visit(f, kids[1], scope)
				return
		if t == "qualified_type":
			pkg = node.child_by_field_name("package")
			if pkg is not None and not self._use_package(f, pkg) and f.path not in self.dot_imports:
				self.error(f, pkg, f"undefined: {f.text(pkg)}")
			return
		if t == "identifier":
			self._resolve(f, node, scope)
		elif t == "type_identifier":
			self._resolve_type(f, node, scope)
		if t in EXPRESSIONS:
			self._record(f, node, scope)
		for c in named(node):
			self._visit(f, c, scope)

	def _visit_type_switch(self, f: SyntaxFile, node: Node, scope: Scope) -> None:
		inner = Scope(scope)
		alias = node.child_by_field_name("alias")
		value = node.child_by_field_name("value")
		for c in named(node):
			if alias is not None and _same_node(c, alias):
				continue
			self._visit(f, c, inner)
			if alias is not None and value is not None and _same_node(c, value):
				idents = named(alias)
				switched = default_type(self.expr_type(f, value, inner))
				self._define_locals(f, idents, [switched] * len(idents), inner)

	def _record(self, f: SyntaxFile, node: Node, scope: Scope) -> None:
		if self.info is None:
			return
		key = NodeKey.of(f, node)
		if key in self.info.types:
			return
		typ = self._expr_type(f, node, scope)
		if typ:
			self.info.types[key] = typ


class Checker:
	"""Type check parsed files of one package against an import resolver."""

	def __init__(self, importer: Importer) -> None:
		self.importer = importer

	def check(
		self,
		path: str,
		fset: FileSet,
		files: List[SyntaxFile],
		info: Optional[AnnotationIndex] = None,
	) -> TypesPackage:
		"""Check ``files``; raises TypeCheckError with every diagnostic found.

		When ``info`` is given it is filled with definitions, uses and types.
		"""
		logger.debug("type checking %s (%d files)", path, len(files))
		return _Run(self.importer, path, files, info).run()

	def annotate(self, path: str, files: List[SyntaxFile], info: AnnotationIndex) -> TypesPackage:
		"""Re-run checking over already checked files to fill ``info``."""
		return _Run(self.importer, path, files, info).run()
