"""Method sets of named types in a type checked package.

A method is reachable through a value handle when it has a value receiver (or
is promoted through an embedded pointer), and through a pointer handle always.
:meth:`MethodResolver.method_set` unions both sets by method name, writing the
pointer set last.
"""

from __future__ import annotations

import enum
import logging
from typing import Dict, List, Optional, Set, Tuple

from .checker import TypesPackage
from .errors import NameNotFoundError, NotExportedError
from .model import Function, MethodSet, ObjectKind, Symbol, is_exported, is_test


logger = logging.getLogger(__name__)


class Reach(enum.IntFlag):
	NONE = 0
	VALUE = 1
	POINTER = 2


def is_api_name(name: str) -> bool:
	"""Exported and not ``go test`` scaffolding."""
	return is_exported(name) and not is_test(name, "Test") and not is_test(name, "Example")


class MethodResolver:
	def __init__(self, pkg: TypesPackage) -> None:
		self.pkg = pkg

	def lookup(self, name: str) -> Symbol:
		sym = self.pkg.scope().lookup(name)
		if sym is None:
			raise NameNotFoundError(name)
		if not is_api_name(name):
			raise NotExportedError(name)
		return sym

	def method_set(self, name: str) -> MethodSet:
		sym = self.lookup(name)
		ms = MethodSet(name=name, obj=sym)
		for pointer in (False, True):
			for mname, m in self._methods_of(sym, pointer).items():
				ms.methods[mname] = Function(symbol=m)
		return ms

	def reach(self, type_name: str, method: str) -> Reach:
		"""Which handles of ``type_name`` can call ``method``."""
		sym = self.lookup(type_name)
		out = Reach.NONE
		if method in self._methods_of(sym, False):
			out |= Reach.VALUE
		if method in self._methods_of(sym, True):
			out |= Reach.POINTER
		return out

	def methods(self) -> Dict[str, MethodSet]:
		"""Non-empty method sets of every exported name in scope."""
		out = {}
		for name in self.pkg.scope().names():
			if not is_api_name(name):
				continue
			ms = self.method_set(name)
			if len(ms):
				out[name] = ms
		return out

	def functions(self) -> List[Function]:
		scope = self.pkg.scope()
		out = []
		for name in scope.names():
			sym = scope.lookup(name)
			if sym is None or sym.kind != ObjectKind.FUNC or not is_api_name(name):
				continue
			out.append(Function(symbol=sym))
		return out

	def variables(self) -> List[Symbol]:
		scope = self.pkg.scope()
		return [
			sym for sym in (scope.lookup(n) for n in scope.names())
			if sym is not None and sym.kind == ObjectKind.VAR and is_exported(sym.name)
		]

	# computation

	def _type_symbol(self, sym: Symbol) -> Tuple[Optional[Symbol], bool]:
		"""The local named type behind ``sym`` and whether it is behind a pointer."""
		if sym.kind == ObjectKind.TYPE:
			return sym, False
		if sym.kind in (ObjectKind.VAR, ObjectKind.CONST) and sym.type:
			pointer = sym.type.startswith("*")
			t = self.pkg.scope().lookup(sym.type.lstrip("*"))
			if t is not None and t.kind == ObjectKind.TYPE:
				return t, pointer
		return None, False

	def _interface_methods(self, sym: Symbol, seen: Set[str]) -> Dict[str, Symbol]:
		out: Dict[str, Symbol] = {}
		if sym.named is None or sym.name in seen:
			return out
		seen.add(sym.name)
		for e in sym.named.embedded:
			if e.package is not None:
				continue
			inner = self.pkg.scope().lookup(e.type_name)
			if inner is not None and inner.kind == ObjectKind.TYPE:
				out.update(self._interface_methods(inner, seen))
		for m in sym.named.interface_methods:
			out[m.name] = m
		return out

	def _methods_of(self, sym: Symbol, pointer: bool) -> Dict[str, Symbol]:
		t, behind_pointer = self._type_symbol(sym)
		if t is None or t.named is None:
			return {}
		if t.named.kind == "interface":
			return {} if pointer or behind_pointer else self._interface_methods(t, set())
		return self._promoted(t, pointer or behind_pointer)

	def _promoted(self, root: Symbol, indirect: bool) -> Dict[str, Symbol]:
		"""Breadth first walk over embedded fields, shallowest name wins."""
		found: Dict[str, Optional[Tuple[Symbol, bool]]] = {}
		shadowed: Set[str] = set()
		seen: Set[str] = set()
		current: List[Tuple[Symbol, bool]] = [(root, indirect)]
		while current:
			at_depth: Dict[str, List[Tuple[Symbol, bool]]] = {}
			fields: Set[str] = set()
			following: List[Tuple[Symbol, bool]] = []
			counts: Dict[str, int] = {}
			for t, _ in current:
				counts[t.name] = counts.get(t.name, 0) + 1
			for t, ind in current:
				if t.name in seen:
					continue
				seen.add(t.name)
				named = t.named
				if named is None:
					continue
				multiple = counts[t.name] > 1
				if named.kind == "interface":
					candidates = list(self._interface_methods(t, set()).values())
					for m in candidates:
						at_depth.setdefault(m.name, []).append((m, True))
						if multiple:
							at_depth[m.name].append((m, True))
					continue
				for m in named.methods:
					at_depth.setdefault(m.name, []).append((m, ind))
					if multiple:
						at_depth[m.name].append((m, ind))
				if named.kind != "struct":
					continue
				fields.update(named.fields)
				for e in named.embedded:
					if e.package is not None:
						continue
					inner = self.pkg.scope().lookup(e.type_name)
					if inner is not None and inner.kind == ObjectKind.TYPE and inner.named is not None:
						following.append((inner, ind or e.pointer))
			for name, entries in at_depth.items():
				if name in shadowed:
					continue
				if len(entries) > 1 or name in fields:
					found[name] = None
				else:
					found[name] = entries[0]
			shadowed.update(at_depth)
			shadowed.update(fields)
			current = following

		out = {}
		for name, entry in found.items():
			if entry is None:
				continue
			m, ind = entry
			if m.pointer_recv and not ind:
				continue
			out[name] = m
		return out
