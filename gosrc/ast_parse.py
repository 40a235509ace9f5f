"""Go source parsing into a syntax forest.

The heavy lifting is done by tree-sitter with the Go grammar; this module
turns the concrete tree into the small declaration model the documentation
and type checking passes work on (package clause, imports, const/var/type
groups with their specs, functions and methods, comment groups) and keeps a
:class:`FileSet` so positions from different files are comparable.
"""

from __future__ import annotations

import bisect
import os
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import tree_sitter_go
from tree_sitter import Language, Parser

from .config import DEFAULT_PARSE_MODE, ParseMode
from .errors import ParseError
from .model import Position


GO_LANGUAGE = Language(tree_sitter_go.language())

Node = Any


def new_parser() -> Parser:
	# Parser objects are not shareable between threads; make one per call.
	return Parser(GO_LANGUAGE)


class SourceFile:
	"""A file registered in a FileSet: its base offset and line table."""

	def __init__(self, name: str, base: int, source: bytes) -> None:
		self.name = name
		self.base = base
		self.size = len(source)
		self._lines = [0] + [m.end() for m in re.finditer(b"\n", source)]

	def pos(self, offset: int) -> int:
		return self.base + offset

	def line_count(self) -> int:
		return len(self._lines)

	def position(self, offset: int) -> Position:
		offset = max(0, min(offset, self.size))
		line = bisect.bisect_right(self._lines, offset)
		column = offset - self._lines[line - 1] + 1
		return Position(filename=self.name, offset=offset, line=line, column=column)


class FileSet:
	"""Position table shared by every file parsed through it."""

	def __init__(self) -> None:
		self._files: List[SourceFile] = []
		self._bases: List[int] = []
		self._base = 1
		self._lock = threading.Lock()

	def base(self) -> int:
		with self._lock:
			return self._base

	def add_file(self, name: str, source: bytes) -> SourceFile:
		with self._lock:
			f = SourceFile(name, self._base, source)
			self._files.append(f)
			self._bases.append(f.base)
			# one extra byte so the end of a file does not collide with the next base
			self._base += f.size + 1
			return f

	def files(self) -> List[SourceFile]:
		with self._lock:
			return list(self._files)

	def file(self, pos: int) -> Optional[SourceFile]:
		with self._lock:
			i = bisect.bisect_right(self._bases, pos) - 1
			if i < 0:
				return None
			f = self._files[i]
			if pos > f.base + f.size:
				return None
			return f

	def position(self, pos: int) -> Position:
		f = self.file(pos)
		if f is None:
			return Position()
		return f.position(pos - f.base)


# Comments


@dataclass
class Comment:
	text: str
	start_byte: int
	end_byte: int
	start_row: int
	end_row: int


_DIRECTIVE = re.compile(r"^(line |extern |export |[a-z0-9]+:[a-z0-9])")


@dataclass
class CommentGroup:
	comments: List[Comment]
	trailing: bool = False

	@property
	def start_byte(self) -> int:
		return self.comments[0].start_byte

	@property
	def end_byte(self) -> int:
		return self.comments[-1].end_byte

	@property
	def start_row(self) -> int:
		return self.comments[0].start_row

	@property
	def end_row(self) -> int:
		return self.comments[-1].end_row

	def text(self) -> str:
		return comment_text([c.text for c in self.comments])


def comment_text(comments: List[str]) -> str:
	"""Text of a comment group with comment markers and directives removed.

	Leading blank lines are dropped, runs of interior blank lines collapse to
	one and a non-empty result always ends in a newline.
	"""
	lines: List[str] = []
	for c in comments:
		if c.startswith("//"):
			c = c[2:]
			if c.startswith(" "):
				c = c[1:]
			elif _DIRECTIVE.match(c):
				continue
		elif c.startswith("/*"):
			c = c[2:-2]
		for line in c.split("\n"):
			lines.append(line.rstrip())

	out: List[str] = []
	for line in lines:
		if line or (out and out[-1]):
			out.append(line)
	if out and out[-1]:
		out.append("")
	return "\n".join(out)


# Declarations


@dataclass
class Ident:
	name: str
	node: Node


@dataclass
class Field:
	names: List[Ident]
	type: Optional[Node]
	variadic: bool = False
	embedded: bool = False
	pointer: bool = False
	tag: Optional[str] = None
	doc: Optional[CommentGroup] = None


@dataclass
class ImportSpec:
	path: str
	name: Optional[str]
	node: Node
	doc: Optional[CommentGroup] = None


@dataclass
class ValueSpec:
	names: List[Ident]
	type: Optional[Node]
	values: List[Node]
	node: Node
	iota: int = 0
	doc: Optional[CommentGroup] = None


@dataclass
class TypeSpec:
	name: Ident
	type: Optional[Node]
	node: Node
	type_params: List[Field] = field(default_factory=list)
	alias: bool = False
	doc: Optional[CommentGroup] = None


Spec = Union[ImportSpec, ValueSpec, TypeSpec]


@dataclass
class GenDecl:
	tok: str  # import, const, var or type
	specs: List[Spec]
	node: Node
	lparen: bool = False
	doc: Optional[CommentGroup] = None


@dataclass
class FuncDecl:
	name: Ident
	node: Node
	recv: Optional[Field] = None
	type_params: List[Field] = field(default_factory=list)
	params: List[Field] = field(default_factory=list)
	results: List[Field] = field(default_factory=list)
	body: Optional[Node] = None
	doc: Optional[CommentGroup] = None


Decl = Union[GenDecl, FuncDecl]


@dataclass
class SyntaxFile:
	path: str
	name: str
	source: bytes
	file: SourceFile
	tree: Any
	name_node: Optional[Node] = None
	doc: Optional[CommentGroup] = None
	imports: List[ImportSpec] = field(default_factory=list)
	decls: List[Decl] = field(default_factory=list)
	comments: List[CommentGroup] = field(default_factory=list)

	@property
	def is_test(self) -> bool:
		return self.path.endswith("_test.go")

	def text(self, node: Node) -> str:
		return node_text(self.source, node)

	def pos(self, node: Node) -> int:
		return self.file.pos(node.start_byte)

	def position(self, node: Node) -> Position:
		return self.file.position(node.start_byte)

	def type_string(self, node: Optional[Node]) -> str:
		return type_string(self.source, node)

	def funcs(self) -> Iterator[FuncDecl]:
		for d in self.decls:
			if isinstance(d, FuncDecl):
				yield d

	def gen_decls(self, tok: Optional[str] = None) -> Iterator[GenDecl]:
		for d in self.decls:
			if isinstance(d, GenDecl) and (tok is None or d.tok == tok):
				yield d


@dataclass
class SyntaxPackage:
	name: str
	files: Dict[str, SyntaxFile] = field(default_factory=dict)

	def file_list(self) -> List[SyntaxFile]:
		return [self.files[k] for k in sorted(self.files)]


# Tree helpers


def node_text(source: bytes, node: Node) -> str:
	return source[node.start_byte:node.end_byte].decode("utf-8", "replace")


def walk(node: Node) -> Iterator[Node]:
	"""Pre-order traversal of ``node`` and all its descendants."""
	stack = [node]
	while stack:
		n = stack.pop()
		yield n
		stack.extend(reversed(n.children))


def named(node: Node) -> List[Node]:
	return [c for c in node.named_children if c.type != "comment"]


def _collapse(text: str) -> str:
	return " ".join(text.split())


def field_list(source: bytes, node: Optional[Node]) -> List[Field]:
	"""Fields of a parameter, type parameter or struct field list."""
	if node is None:
		return []
	fields: List[Field] = []
	for child in named(node):
		t = child.type
		if t == "parameter_declaration":
			fields.append(Field(names=_idents(source, child, "name"), type=child.child_by_field_name("type")))
		elif t == "variadic_parameter_declaration":
			fields.append(Field(
				names=_idents(source, child, "name"),
				type=child.child_by_field_name("type"),
				variadic=True,
			))
		elif t == "type_parameter_declaration":
			fields.append(Field(names=_idents(source, child, "name"), type=child.child_by_field_name("type")))
		elif t == "field_declaration":
			names = _idents(source, child, "name")
			tag = child.child_by_field_name("tag")
			fields.append(Field(
				names=names,
				type=child.child_by_field_name("type"),
				embedded=not names,
				pointer=not names and any(c.type == "*" for c in child.children),
				tag=node_text(source, tag) if tag is not None else None,
			))
	return fields


def result_list(source: bytes, node: Optional[Node]) -> List[Field]:
	if node is None:
		return []
	if node.type == "parameter_list":
		return field_list(source, node)
	return [Field(names=[], type=node)]


def _idents(source: bytes, node: Node, field_name: str) -> List[Ident]:
	return [Ident(node_text(source, n), n) for n in node.children_by_field_name(field_name)]


def _fields_string(source: bytes, fields: List[Field], sep: str = ", ") -> str:
	parts = []
	for f in fields:
		typ = type_string(source, f.type)
		if f.variadic:
			typ = "..." + typ
		if f.pointer:
			typ = "*" + typ
		if f.names:
			parts.extend(f"{n.name} {typ}" for n in f.names)
		else:
			parts.append(typ)
	return sep.join(parts)


def signature_string(source: bytes, params: Optional[Node], result: Optional[Node]) -> str:
	out = "(" + _fields_string(source, field_list(source, params)) + ")"
	if result is None:
		return out
	if result.type == "parameter_list":
		return out + " (" + _fields_string(source, field_list(source, result)) + ")"
	return out + " " + type_string(source, result)


def type_string(source: bytes, node: Optional[Node]) -> str:
	"""Canonical single-line rendering of a type expression."""
	if node is None:
		return ""
	t = node.type
	kids = named(node)
	if t in ("type_identifier", "identifier", "package_identifier", "field_identifier"):
		return node_text(source, node)
	if t == "qualified_type":
		pkg = node.child_by_field_name("package")
		name = node.child_by_field_name("name")
		return f"{node_text(source, pkg)}.{node_text(source, name)}"
	if t == "pointer_type":
		return "*" + type_string(source, kids[0] if kids else None)
	if t == "slice_type":
		return "[]" + type_string(source, node.child_by_field_name("element"))
	if t == "array_type":
		length = node.child_by_field_name("length")
		return "[" + _collapse(node_text(source, length)) + "]" + type_string(source, node.child_by_field_name("element"))
	if t == "implicit_length_array_type":
		return "[...]" + type_string(source, node.child_by_field_name("element"))
	if t == "map_type":
		key = type_string(source, node.child_by_field_name("key"))
		return f"map[{key}]" + type_string(source, node.child_by_field_name("value"))
	if t == "channel_type":
		tokens = [c.type for c in node.children if not c.is_named]
		if tokens and tokens[0] == "<-":
			prefix = "<-chan "
		elif "<-" in tokens:
			prefix = "chan<- "
		else:
			prefix = "chan "
		return prefix + type_string(source, node.child_by_field_name("value"))
	if t == "function_type":
		return "func" + signature_string(source, node.child_by_field_name("parameters"), node.child_by_field_name("result"))
	if t == "struct_type":
		body = next((c for c in kids if c.type == "field_declaration_list"), None)
		fields = field_list(source, body)
		parts = []
		for f in fields:
			s = _fields_string(source, [f], "; ")
			if f.tag:
				s += " " + f.tag
			parts.append(s)
		return "struct{" + "; ".join(parts) + "}"
	if t == "interface_type":
		parts = []
		for elem in kids:
			if elem.type in ("method_elem", "method_spec"):
				name = node_text(source, elem.child_by_field_name("name"))
				parts.append(name + signature_string(
					source, elem.child_by_field_name("parameters"), elem.child_by_field_name("result")))
			else:
				parts.append(type_string(source, elem))
		return "interface{" + "; ".join(parts) + "}"
	if t == "generic_type":
		base = type_string(source, node.child_by_field_name("type"))
		args = node.child_by_field_name("type_arguments")
		rendered = [type_string(source, a) for a in named(args)] if args is not None else []
		return base + "[" + ", ".join(rendered) + "]"
	if t == "parenthesized_type":
		return "(" + type_string(source, kids[0] if kids else None) + ")"
	if t == "negated_type":
		return "~" + type_string(source, kids[0] if kids else None)
	if t in ("type_elem", "constraint_elem", "type_constraint", "interface_type_name", "struct_elem"):
		return " | ".join(type_string(source, k) for k in kids)
	return _collapse(node_text(source, node))


def base_type(node: Optional[Node]) -> "tuple[Optional[Node], bool]":
	"""Strip parentheses, pointers and type arguments: ``(*T[K])`` -> (T, True)."""
	pointer = False
	while node is not None:
		if node.type == "parenthesized_type":
			node = named(node)[0] if named(node) else None
		elif node.type == "pointer_type":
			pointer = True
			node = named(node)[0] if named(node) else None
		elif node.type == "generic_type":
			node = node.child_by_field_name("type")
		else:
			break
	return node, pointer


# Parsing


def _first_error(root: Node, limit: Optional[int]) -> Iterator[Node]:
	stack = [root]
	while stack:
		n = stack.pop()
		if limit is not None and n.start_byte >= limit:
			continue
		if n.type == "ERROR" or n.is_missing:
			yield n
			continue
		if n.has_error:
			stack.extend(reversed(n.children))


def _error_message(source: bytes, node: Node) -> str:
	if node.is_missing:
		return f"expected {node.type!r}"
	snippet = _collapse(node_text(source, node))[:32]
	if not snippet:
		return "syntax error"
	return f"syntax error near {snippet!r}"


def _group_comments(source: bytes, nodes: List[Node]) -> List[CommentGroup]:
	groups: List[CommentGroup] = []
	current: List[Comment] = []

	def flush(trailing: bool = False) -> None:
		if current:
			groups.append(CommentGroup(comments=list(current), trailing=trailing))
			current.clear()

	for n in nodes:
		c = Comment(
			text=node_text(source, n),
			start_byte=n.start_byte,
			end_byte=n.end_byte,
			start_row=n.start_point[0],
			end_row=n.end_point[0],
		)
		line_start = source.rfind(b"\n", 0, c.start_byte) + 1
		if current and current[-1].end_byte > line_start:
			before = source[current[-1].end_byte:c.start_byte]
		else:
			before = source[line_start:c.start_byte]
		after_code = before.strip() != b""
		if current and not after_code:
			gap = source[current[-1].end_byte:c.start_byte]
			if gap.count(b"\n") <= 1:
				current.append(c)
				continue
		flush()
		current.append(c)
		if after_code:
			# a comment following code on the same line stands alone
			flush(trailing=True)
	flush()
	return groups


class _FileParser:
	def __init__(self, fset: FileSet, path: str, source: bytes, tree: Any, mode: ParseMode) -> None:
		self.path = path
		self.source = source
		self.tree = tree
		self.mode = mode
		self.file = fset.add_file(path, source)
		self._docs: Dict[int, CommentGroup] = {}

	def error(self, node: Node, message: str) -> ParseError:
		return ParseError(self.path, message, self.file.position(node.start_byte))

	def doc_for(self, node: Node) -> Optional[CommentGroup]:
		g = self._docs.get(node.start_point[0] - 1)
		if g is not None and g.end_byte <= node.start_byte:
			return g
		return None

	def parse(self) -> SyntaxFile:
		root = self.tree.root_node
		top = named(root)
		if not top or top[0].type != "package_clause":
			where = top[0] if top else root
			raise self.error(where, "expected 'package' clause")
		clause = top[0]

		header_only = bool(self.mode & (ParseMode.PACKAGE_CLAUSE_ONLY | ParseMode.IMPORTS_ONLY))
		limit = None
		if header_only:
			limit = clause.end_byte
			if self.mode & ParseMode.IMPORTS_ONLY:
				for n in top[1:]:
					if n.type != "import_declaration":
						break
					limit = n.end_byte
		errors = list(_first_error(root, limit))
		if errors:
			message = _error_message(self.source, errors[0])
			if self.mode & ParseMode.ALL_ERRORS and len(errors) > 1:
				message += f" (and {len(errors) - 1} more errors)"
			raise self.error(errors[0], message)

		name_node = next((c for c in clause.named_children if c.type in ("package_identifier", "identifier")), None)
		sf = SyntaxFile(
			path=self.path,
			name=node_text(self.source, name_node) if name_node is not None else "",
			source=self.source,
			file=self.file,
			tree=self.tree,
			name_node=name_node,
		)
		if self.mode & ParseMode.PARSE_COMMENTS:
			comment_nodes = [n for n in walk(root) if n.type == "comment"]
			if limit is not None:
				comment_nodes = [n for n in comment_nodes if n.start_byte < limit]
			sf.comments = _group_comments(self.source, comment_nodes)
			self._docs = {g.end_row: g for g in sf.comments if not g.trailing}
			sf.doc = self.doc_for(clause)

		if self.mode & ParseMode.PACKAGE_CLAUSE_ONLY:
			return sf
		for node in top[1:]:
			t = node.type
			if t == "import_declaration":
				decl = self._gen_decl(node, "import")
				sf.imports.extend(s for s in decl.specs if isinstance(s, ImportSpec))
				sf.decls.append(decl)
				continue
			if self.mode & ParseMode.IMPORTS_ONLY:
				break
			if t == "function_declaration" or t == "method_declaration":
				sf.decls.append(self._func_decl(node))
			elif t == "const_declaration":
				sf.decls.append(self._gen_decl(node, "const"))
			elif t == "var_declaration":
				sf.decls.append(self._gen_decl(node, "var"))
			elif t == "type_declaration":
				sf.decls.append(self._gen_decl(node, "type"))
			elif t == "package_clause":
				raise self.error(node, "unexpected package clause")
			else:
				raise self.error(node, "non-declaration statement outside function body")
		return sf

	def _spec_nodes(self, node: Node, kinds: "tuple[str, ...]") -> Iterator[Node]:
		for child in named(node):
			if child.type in kinds:
				yield child
			elif child.type.endswith("_list"):
				yield from self._spec_nodes(child, kinds)

	def _gen_decl(self, node: Node, tok: str) -> GenDecl:
		src = self.source
		lparen = any(c.type == "(" for c in node.children) or any(
			c.type.endswith("_spec_list") for c in node.named_children)
		decl = GenDecl(tok=tok, specs=[], node=node, lparen=lparen, doc=self.doc_for(node))
		if tok == "import":
			for spec in self._spec_nodes(node, ("import_spec",)):
				path = spec.child_by_field_name("path")
				name = spec.child_by_field_name("name")
				decl.specs.append(ImportSpec(
					path=node_text(src, path)[1:-1] if path is not None else "",
					name=node_text(src, name) if name is not None else None,
					node=spec,
					doc=self.doc_for(spec) if lparen else None,
				))
		elif tok in ("const", "var"):
			for i, spec in enumerate(self._spec_nodes(node, (tok + "_spec",))):
				value = spec.child_by_field_name("value")
				decl.specs.append(ValueSpec(
					names=_idents(src, spec, "name"),
					type=spec.child_by_field_name("type"),
					values=named(value) if value is not None else [],
					node=spec,
					iota=i,
					doc=self.doc_for(spec) if lparen else None,
				))
		else:
			for spec in self._spec_nodes(node, ("type_spec", "type_alias")):
				name = spec.child_by_field_name("name")
				decl.specs.append(TypeSpec(
					name=Ident(node_text(src, name), name),
					type=spec.child_by_field_name("type"),
					node=spec,
					type_params=field_list(src, spec.child_by_field_name("type_parameters")),
					alias=spec.type == "type_alias",
					doc=self.doc_for(spec) if lparen else None,
				))
		return decl

	def _func_decl(self, node: Node) -> FuncDecl:
		src = self.source
		name = node.child_by_field_name("name")
		recv = None
		if node.type == "method_declaration":
			fields = field_list(src, node.child_by_field_name("receiver"))
			if len(fields) != 1:
				raise self.error(node, "method has multiple receivers" if fields else "method has no receiver")
			recv = fields[0]
		return FuncDecl(
			name=Ident(node_text(src, name), name),
			node=node,
			recv=recv,
			type_params=field_list(src, node.child_by_field_name("type_parameters")),
			params=field_list(src, node.child_by_field_name("parameters")),
			results=result_list(src, node.child_by_field_name("result")),
			body=node.child_by_field_name("body"),
			doc=self.doc_for(node),
		)


def _read(path: str) -> bytes:
	try:
		with open(path, "rb") as fh:
			return fh.read()
	except OSError as e:
		raise ParseError(path, e.strerror or str(e)) from e


def parse_file(
	fset: FileSet,
	filename: str,
	src: Optional[bytes] = None,
	mode: ParseMode = DEFAULT_PARSE_MODE,
	parser: Optional[Parser] = None,
) -> SyntaxFile:
	"""Parse one Go file; ``src`` overrides reading ``filename`` from disk."""
	if src is None:
		src = _read(filename)
	elif isinstance(src, str):
		src = src.encode("utf-8")
	try:
		src.decode("utf-8")
	except UnicodeDecodeError as e:
		position = SourceFile(filename, 0, src).position(e.start)
		raise ParseError(filename, "illegal UTF-8 encoding", position) from e
	parser = parser or new_parser()
	tree = parser.parse(src)
	return _FileParser(fset, filename, src, tree, mode).parse()


def parse_dir(
	fset: FileSet,
	directory: str,
	file_filter: Optional[Callable[[str], bool]] = None,
	mode: ParseMode = DEFAULT_PARSE_MODE,
) -> Dict[str, SyntaxPackage]:
	"""Parse every ``.go`` file in ``directory`` grouped by package name.

	Files are parsed in name order; the first failure raises ParseError.
	"""
	try:
		entries = sorted(os.listdir(directory))
	except OSError as e:
		raise ParseError(directory, e.strerror or str(e)) from e

	parser = new_parser()
	pkgs: Dict[str, SyntaxPackage] = {}
	for name in entries:
		if not name.endswith(".go"):
			continue
		path = os.path.join(directory, name)
		if not os.path.isfile(path):
			continue
		if file_filter is not None and not file_filter(name):
			continue
		sf = parse_file(fset, path, mode=mode, parser=parser)
		pkg = pkgs.get(sf.name)
		if pkg is None:
			pkg = pkgs[sf.name] = SyntaxPackage(name=sf.name)
		pkg.files[path] = sf
	return pkgs
