"""Documentation model extraction from parsed Go packages.

:func:`new_doc` consumes its input: unexported declarations are filtered out
of the syntax package, function bodies are dropped and every doc comment that
ends up in the model is detached from its declaration. Callers that need the
syntax afterwards must parse the package again.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .ast_parse import (
	CommentGroup,
	FuncDecl,
	GenDecl,
	Ident,
	Node,
	SyntaxFile,
	SyntaxPackage,
	TypeSpec,
	ValueSpec,
	base_type,
	comment_text,
	field_list,
	named,
)
from .checker import UNIVERSE_TYPES
from .config import DEFAULT_DOC_MODE, DocMode
from .model import DocFunc, DocPackage, DocType, Example, Note, Value, is_exported, is_test, is_upper


# Comments and synopsis

_KEEP_NL = 1


def clean(s: str, flags: int = 0) -> str:
	"""Collapse runs of blanks; newlines survive only with ``_KEEP_NL``."""
	out: List[str] = []
	p = " "
	for q in s:
		if (not flags & _KEEP_NL and q == "\n") or q in "\r\t":
			q = " "
		if q != " " or p != " ":
			out.append(q)
			p = q
	if out and p == " ":
		out.pop()
	return "".join(out)


def first_sentence_len(s: str) -> int:
	ppp = pp = p = ""
	for i, q in enumerate(s):
		if q in "\n\r\t":
			q = " "
		if q == " " and p == "." and (not (pp and is_upper(pp)) or (ppp and is_upper(ppp))):
			return i
		if p in ("。", "．"):
			return i
		ppp, pp, p = pp, p, q
	return len(s)


ILLEGAL_PREFIXES = ("copyright", "all rights", "author")


def synopsis(text: str) -> str:
	"""First sentence of a doc comment, or "" for legal boilerplate."""
	s = clean(text[: first_sentence_len(text)])
	if s.lower().startswith(ILLEGAL_PREFIXES):
		return ""
	return s.replace("``", "“").replace("''", "”")


def _group_text(group: Optional[CommentGroup]) -> str:
	return group.text() if group is not None else ""


# Notes

NOTE_MARKER = r"([A-Z][A-Z]+)\(([^)]+)\):?"
_NOTE_MARKER_RX = re.compile(r"^[ \t]*" + NOTE_MARKER)
_NOTE_COMMENT_RX = re.compile(r"^/[/*][ \t]*" + NOTE_MARKER)


def read_notes(f: SyntaxFile, notes: Dict[str, List[Note]]) -> None:
	"""Collect ``MARKER(uid): body`` notes; a note runs to the next marker."""
	for group in f.comments:
		start = -1
		for j, c in enumerate(group.comments):
			if _NOTE_COMMENT_RX.match(c.text):
				if start >= 0:
					_read_note(f, group.comments[start:j], notes)
				start = j
		if start >= 0:
			_read_note(f, group.comments[start:], notes)


def _read_note(f: SyntaxFile, comments, notes: Dict[str, List[Note]]) -> None:
	text = comment_text([c.text for c in comments])
	m = _NOTE_MARKER_RX.match(text)
	if m is None:
		return
	body = clean(text[m.end():], _KEEP_NL)
	if not body:
		return
	notes.setdefault(m.group(1), []).append(Note(
		position=f.file.position(comments[0].start_byte),
		end=f.file.position(comments[-1].end_byte),
		uid=m.group(2),
		body=body,
	))


# Examples

_OUTPUT_PREFIX = re.compile(r"(?i)^\s*(unordered )?output:")


def _example_output(f: SyntaxFile, body: Node) -> Tuple[str, bool, bool]:
	last: Optional[CommentGroup] = None
	for g in f.comments:
		if g.start_byte < body.start_byte:
			continue
		if g.end_byte > body.end_byte:
			break
		last = g
	if last is None:
		return "", False, False
	text = last.text()
	m = _OUTPUT_PREFIX.match(text)
	if m is None:
		return "", False, False
	text = text[m.end():].lstrip(" ")
	if text.startswith("\n"):
		text = text[1:]
	return text, m.group(1) is not None, True


def examples(files: List[SyntaxFile]) -> List[Example]:
	"""``ExampleXxx`` functions declared in test files, in source order."""
	out: List[Example] = []
	for f in files:
		if not f.is_test:
			continue
		has_tests = False
		num_decl = 0
		found: List[Example] = []
		for decl in f.decls:
			if isinstance(decl, GenDecl):
				if decl.tok != "import":
					num_decl += 1
				continue
			if decl.recv is not None:
				continue
			num_decl += 1
			name = decl.name.name
			if is_test(name, "Test") or is_test(name, "Benchmark") or is_test(name, "Fuzz"):
				has_tests = True
				continue
			if not is_test(name, "Example"):
				continue
			if decl.params or decl.results or decl.type_params or decl.body is None:
				continue
			output, unordered, has_output = _example_output(f, decl.body)
			found.append(Example(
				name=name[len("Example"):],
				doc=_group_text(decl.doc),
				code=f.text(decl.body),
				output=output,
				unordered=unordered,
				empty_output=has_output and output == "",
				order=len(found),
			))
		if not has_tests and num_decl > 1 and len(found) == 1:
			# a lone example among other declarations is a whole-file example
			found[0].code = f.source.decode("utf-8", "replace")
		out.extend(found)
	return out


# Package documentation


def base_type_name(f: SyntaxFile, node: Optional[Node]) -> Tuple[str, bool]:
	"""Name of the base type of a type expression and whether it is imported."""
	base, _ = base_type(node)
	if base is None:
		return "", False
	if base.type == "qualified_type":
		name = base.child_by_field_name("name")
		return (f.text(name) if name is not None else ""), True
	if base.type == "type_identifier":
		return f.text(base), False
	return "", False


@dataclass
class _Func:
	doc: DocFunc
	decl: Optional[FuncDecl] = None
	file: Optional[SyntaxFile] = None
	pointer: bool = False


@dataclass
class _Type:
	name: str
	decl_text: str = ""
	declared: bool = False
	doc: str = ""
	is_struct: bool = False
	is_embedded: bool = False
	embedded: Dict[str, bool] = field(default_factory=dict)
	values: List[Tuple[str, Value]] = field(default_factory=list)
	funcs: Dict[str, _Func] = field(default_factory=dict)
	methods: Dict[str, _Func] = field(default_factory=dict)


def _set_func(mset: Dict[str, _Func], f: SyntaxFile, decl: FuncDecl) -> None:
	name = decl.name.name
	existing = mset.get(name)
	if existing is not None and existing.doc.doc:
		return
	recv = ""
	pointer = False
	if decl.recv is not None:
		recv = f.type_string(decl.recv.type)
		_, pointer = base_type(decl.recv.type)
	mset[name] = _Func(
		doc=DocFunc(doc=_group_text(decl.doc), name=name, decl=_func_header(f, decl), recv=recv, orig=recv),
		decl=decl,
		file=f,
		pointer=pointer,
	)
	decl.doc = None


def _add_method(mset: Dict[str, _Func], m: _Func) -> None:
	old = mset.get(m.doc.name)
	if old is None or m.doc.level < old.doc.level:
		mset[m.doc.name] = m
		return
	if m.doc.level == old.doc.level:
		# same depth collision; neither is reachable
		mset[m.doc.name] = _Func(doc=DocFunc(name=m.doc.name, level=m.doc.level))


def _func_header(f: SyntaxFile, decl: FuncDecl) -> str:
	end = decl.body.start_byte if decl.body is not None else decl.node.end_byte
	return f.source[decl.node.start_byte:end].decode("utf-8", "replace").rstrip()


def _customize_recv(m: _Func, f: SyntaxFile, decl: FuncDecl, recv_type: str, embedded_ptr: bool, level: int) -> _Func:
	recv = "*" + recv_type if m.pointer and not embedded_ptr else recv_type
	names = ", ".join(n.name for n in decl.recv.names) if decl.recv is not None else ""
	# bodies are gone by now; cut the signature out of the recorded header
	sig = m.doc.decl.encode("utf-8")[decl.name.node.end_byte - decl.node.start_byte:].decode("utf-8", "replace")
	head = f"func ({names + ' ' if names else ''}{recv}) {decl.name.name}{sig}"
	return _Func(
		doc=m.doc.model_copy(update={"decl": head, "recv": recv, "level": level}),
		decl=decl,
		file=f,
		pointer=m.pointer,
	)


class _Reader:
	def __init__(self, mode: DocMode) -> None:
		self.mode = mode
		self.doc = ""
		self.order = 0
		self.values: List[Tuple[str, Value]] = []
		self.types: Dict[str, _Type] = {}
		self.funcs: Dict[str, _Func] = {}
		self.notes: Dict[str, List[Note]] = {}
		self.has_dot_import = False

	def is_visible(self, name: str) -> bool:
		return bool(self.mode & DocMode.ALL_DECLS) or is_exported(name)

	def lookup_type(self, name: str) -> Optional[_Type]:
		if name in ("", "_"):
			return None
		t = self.types.get(name)
		if t is None:
			t = self.types[name] = _Type(name=name)
		return t

	def is_predeclared(self, name: str) -> bool:
		return name in UNIVERSE_TYPES and name not in self.types

	# export filtering

	def filter_file(self, f: SyntaxFile) -> None:
		kept = []
		for decl in f.decls:
			if isinstance(decl, FuncDecl):
				if self.is_visible(decl.name.name):
					kept.append(decl)
				continue
			if decl.tok == "import":
				kept.append(decl)
				continue
			decl.specs = self._filter_specs(f, decl)
			if decl.specs:
				kept.append(decl)
		f.decls = kept

	def _filter_specs(self, f: SyntaxFile, decl: GenDecl) -> list:
		kept = []
		prev_type: Optional[Node] = None
		for spec in decl.specs:
			if isinstance(spec, TypeSpec):
				if self.is_visible(spec.name.name):
					kept.append(spec)
				continue
			if not isinstance(spec, ValueSpec):
				continue
			if decl.tok == "const" and spec.type is None and not spec.values and prev_type is not None:
				spec.type = prev_type
			exported = any(self.is_visible(n.name) for n in spec.names)
			prev_type = None if exported else spec.type
			if not exported:
				continue
			if spec.values or spec.type is None:
				# keep positions aligned with the right hand side
				spec.names = [n if self.is_visible(n.name) else Ident("_", n.node) for n in spec.names]
			else:
				spec.names = [n for n in spec.names if self.is_visible(n.name)]
			kept.append(spec)
		return kept

	# reading

	def read_file(self, f: SyntaxFile) -> None:
		if f.doc is not None:
			text = f.doc.text()
			self.doc = text if not self.doc else self.doc + "\n" + text
			f.doc = None
		for decl in f.decls:
			if isinstance(decl, FuncDecl):
				self.read_func(f, decl)
			elif decl.tok == "import":
				if any(s.name == "." for s in decl.specs):
					self.has_dot_import = True
			elif decl.tok in ("const", "var"):
				self.read_value(f, decl)
			elif decl.tok == "type":
				# every type in a group falls back to the group's doc
				group_doc = decl.doc
				for spec in decl.specs:
					if isinstance(spec, TypeSpec):
						self.read_type(f, decl, spec, group_doc)
		read_notes(f, self.notes)

	def read_value(self, f: SyntaxFile, decl: GenDecl) -> None:
		dom_name = ""
		dom_freq = 0
		prev = ""
		n = 0
		for spec in decl.specs:
			if not isinstance(spec, ValueSpec):
				continue
			name = ""
			if spec.type is not None:
				tname, imported = base_type_name(f, spec.type)
				if not imported:
					name = tname
			elif decl.tok == "const" and not spec.values:
				name = prev
			if name:
				if dom_name and dom_name != name:
					dom_name = ""
					break
				dom_name = name
				dom_freq += 1
			prev = name
			n += 1
		if n == 0:
			return

		target = self.values
		if dom_name and self.is_visible(dom_name) and dom_freq >= int(len(decl.specs) * 0.75):
			t = self.lookup_type(dom_name)
			if t is not None:
				target = t.values
		names = [i.name for s in decl.specs if isinstance(s, ValueSpec) for i in s.names if i.name != "_"]
		target.append((decl.tok, Value(
			doc=_group_text(decl.doc),
			names=names,
			decl=self._value_decl_text(f, decl),
			order=self.order,
		)))
		decl.doc = None
		self.order += 1

	def _value_spec_text(self, f: SyntaxFile, spec: ValueSpec) -> str:
		idents = spec.node.children_by_field_name("name")
		if [i.name for i in spec.names] == [f.text(n) for n in idents] and spec.type == spec.node.child_by_field_name("type"):
			return f.text(spec.node)
		out = ", ".join(i.name for i in spec.names)
		if spec.type is not None:
			out += " " + f.type_string(spec.type)
		if spec.values:
			out += " = " + ", ".join(f.text(v) for v in spec.values)
		return out

	def _value_decl_text(self, f: SyntaxFile, decl: GenDecl) -> str:
		specs = [s for s in decl.specs if isinstance(s, ValueSpec)]
		if not decl.lparen:
			return f"{decl.tok} {self._value_spec_text(f, specs[0])}"
		lines = []
		for s in specs:
			if s.doc is not None:
				lines.extend("\t" + c.text for c in s.doc.comments)
			lines.append("\t" + self._value_spec_text(f, s))
		return f"{decl.tok} (\n" + "\n".join(lines) + "\n)"

	def read_type(self, f: SyntaxFile, decl: GenDecl, spec: TypeSpec, group_doc: Optional[CommentGroup] = None) -> None:
		t = self.lookup_type(spec.name.name)
		if t is None:
			return
		t.declared = True
		doc = spec.doc if spec.doc is not None else group_doc
		spec.doc = None
		decl.doc = None
		t.doc = _group_text(doc)
		t.decl_text = "type " + self._type_spec_text(f, spec, decl.lparen, t)

	def _type_spec_text(self, f: SyntaxFile, spec: TypeSpec, grouped: bool, t: _Type) -> str:
		text = f.text(spec.node)
		if grouped:
			text = text.replace("\n\t", "\n")
		node = spec.type
		if node is None or node.type not in ("struct_type", "interface_type"):
			return text
		t.is_struct = node.type == "struct_type"
		members = self._members(f, node)
		for name, pointer, embedded_node in members:
			if embedded_node is not None:
				t.embedded[name] = pointer
				et = self.lookup_type(name)
				if et is not None:
					et.is_embedded = True
		if self.mode & DocMode.ALL_DECLS:
			return text
		kept = []
		filtered = False
		for member in self._member_nodes(f, node):
			line = self._filter_member(f, member)
			if line is None:
				filtered = True
			else:
				kept.append(line)
		if not filtered:
			return text
		what = "fields" if t.is_struct else "methods"
		kept.append(f"// contains filtered or unexported {what}")
		head = f.source[spec.node.start_byte:node.start_byte].decode("utf-8", "replace")
		kw = "struct" if t.is_struct else "interface"
		return head + kw + " {\n" + "\n".join("\t" + line for line in kept) + "\n}"

	def _member_nodes(self, f: SyntaxFile, node: Node) -> List[Node]:
		if node.type == "struct_type":
			body = next((c for c in named(node) if c.type == "field_declaration_list"), None)
			return [c for c in named(body) if c.type == "field_declaration"] if body is not None else []
		return [c for c in named(node) if c.type != "comment"]

	def _members(self, f: SyntaxFile, node: Node) -> List[Tuple[str, bool, Optional[Node]]]:
		out = []
		if node.type == "struct_type":
			body = next((c for c in named(node) if c.type == "field_declaration_list"), None)
			for fld in field_list(f.source, body):
				if fld.embedded:
					name, imported = base_type_name(f, fld.type)
					if name and not imported:
						out.append((name, fld.pointer or base_type(fld.type)[1], fld.type))
		else:
			for elem in named(node):
				if elem.type == "type_elem":
					kids = named(elem)
					if len(kids) == 1 and kids[0].type == "type_identifier":
						out.append((f.text(kids[0]), False, kids[0]))
		return out

	def _filter_member(self, f: SyntaxFile, member: Node) -> Optional[str]:
		if member.type == "field_declaration":
			names = member.children_by_field_name("name")
			if not names:
				name, _ = base_type_name(f, member.child_by_field_name("type"))
				return f.text(member) if self.is_visible(name) else None
			visible = [f.text(n) for n in names if self.is_visible(f.text(n))]
			if not visible:
				return None
			if len(visible) == len(names):
				return f.text(member)
			rest = f.source[names[-1].end_byte:member.end_byte].decode("utf-8", "replace")
			return ", ".join(visible) + rest
		if member.type in ("method_elem", "method_spec"):
			name = member.child_by_field_name("name")
			return f.text(member) if name is not None and self.is_visible(f.text(name)) else None
		if member.type == "type_elem":
			kids = named(member)
			if len(kids) == 1 and kids[0].type in ("type_identifier", "qualified_type"):
				name, _ = base_type_name(f, kids[0])
				return f.text(member) if self.is_visible(name) else None
		return f.text(member)

	def read_func(self, f: SyntaxFile, decl: FuncDecl) -> None:
		if decl.recv is not None:
			name, imported = base_type_name(f, decl.recv.type)
			if imported:
				return
			t = self.lookup_type(name)
			if t is not None:
				_set_func(t.methods, f, decl)
			decl.body = None
			return

		if decl.results:
			owner: Optional[_Type] = None
			count = 0
			tparams = {n.name for p in decl.type_params for n in p.names}
			for res in decl.results:
				node = res.type
				if node is not None and node.type in ("slice_type", "array_type"):
					node = node.child_by_field_name("element")
				name, imported = base_type_name(f, node)
				if imported or not self.is_visible(name) or self.is_predeclared(name) or name in tparams:
					continue
				t = self.lookup_type(name)
				if t is not None:
					owner = t
					count += 1
					if count > 1:
						break
			if count == 1 and owner is not None:
				_set_func(owner.funcs, f, decl)
				decl.body = None
				return
		_set_func(self.funcs, f, decl)
		decl.body = None

	# assembly

	def _collect_embedded(self, mset: Dict[str, _Func], t: _Type, recv: str, embedded_ptr: bool, level: int, visited: set) -> None:
		visited.add(t.name)
		for name, pointer in t.embedded.items():
			et = self.types.get(name)
			if et is None:
				continue
			this_ptr = embedded_ptr or pointer
			for m in et.methods.values():
				if m.doc.level == 0 and m.decl is not None and m.file is not None:
					_add_method(mset, _customize_recv(m, m.file, m.decl, recv, this_ptr, level))
			if et.name not in visited:
				self._collect_embedded(mset, et, recv, this_ptr, level + 1, visited)
		visited.discard(t.name)

	def compute_method_sets(self) -> None:
		for t in self.types.values():
			if t.is_struct:
				self._collect_embedded(t.methods, t, t.name, False, 1, set())

	def cleanup_types(self) -> None:
		for name in list(self.types):
			t = self.types[name]
			visible = self.is_visible(name)
			predeclared = name in UNIVERSE_TYPES
			if not t.declared and (predeclared or (visible and (t.is_embedded or self.has_dot_import))):
				self.values.extend(t.values)
				self.funcs.update(t.funcs)
				if not predeclared:
					for mname, m in t.methods.items():
						self.funcs.setdefault(mname, m)
			if not t.declared or not visible:
				del self.types[name]

	def _sorted_funcs(self, mset: Dict[str, _Func], all_methods: bool) -> List[DocFunc]:
		out = []
		for m in mset.values():
			if m.decl is None:
				continue
			if all_methods or m.doc.level == 0 or not is_exported(m.doc.orig.lstrip("*")):
				out.append(m.doc)
		return sorted(out, key=lambda d: d.name)

	@staticmethod
	def _sorted_values(values: List[Tuple[str, Value]], tok: str) -> List[Value]:
		return sorted((v for t, v in values if t == tok), key=lambda v: v.order)

	def package(self, pkg: SyntaxPackage, import_path: str) -> DocPackage:
		all_methods = bool(self.mode & DocMode.ALL_METHODS)
		types = []
		for name in sorted(self.types):
			t = self.types[name]
			types.append(DocType(
				doc=t.doc,
				name=name,
				decl=t.decl_text,
				consts=self._sorted_values(t.values, "const"),
				vars=self._sorted_values(t.values, "var"),
				funcs=self._sorted_funcs(t.funcs, True),
				methods=self._sorted_funcs(t.methods, all_methods),
			))
		return DocPackage(
			name=pkg.name,
			import_path=import_path,
			doc=self.doc,
			filenames=sorted(pkg.files),
			notes=self.notes,
			bugs=[n.body for n in self.notes.get("BUG", [])],
			consts=self._sorted_values(self.values, "const"),
			vars=self._sorted_values(self.values, "var"),
			types=types,
			funcs=self._sorted_funcs(self.funcs, True),
		)


def new_doc(pkg: SyntaxPackage, import_path: str, mode: DocMode = DEFAULT_DOC_MODE) -> DocPackage:
	"""Build the documentation model of ``pkg``, consuming it."""
	r = _Reader(DocMode(mode))
	files = pkg.file_list()
	if not mode & DocMode.ALL_DECLS:
		for f in files:
			r.filter_file(f)
	for f in files:
		r.read_file(f)
	r.compute_method_sets()
	r.cleanup_types()
	return r.package(pkg, import_path)
