from __future__ import annotations

import logging
import os
import re
from typing import Callable, Dict, List, Optional, Tuple

from .ast_parse import FileSet, parse_file
from .config import BuildSettings, ParseMode
from .errors import ImportNotFoundError, MultiplePackageError, NoGoFilesError, ParseError
from .model import PackageIdentity


logger = logging.getLogger(__name__)


EXTENSION_KIND: Dict[str, str] = {
	".go": "go",
	".c": "c",
	".h": "h",
	".hh": "h",
	".hpp": "h",
	".hxx": "h",
	".cc": "cxx",
	".cpp": "cxx",
	".cxx": "cxx",
	".m": "m",
	".s": "s",
	".S": "s",
	".sx": "s",
	".swig": "swig",
	".swigcxx": "swig",
	".syso": "syso",
}

KNOWN_OS = {
	"aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos", "ios", "js",
	"linux", "nacl", "netbsd", "openbsd", "plan9", "solaris", "wasip1", "windows", "zos",
}

UNIX_OS = {
	"aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos", "ios",
	"linux", "netbsd", "openbsd", "solaris",
}

KNOWN_ARCH = {
	"386", "amd64", "amd64p32", "arm", "armbe", "arm64", "arm64be", "loong64", "mips",
	"mipsle", "mips64", "mips64le", "mips64p32", "mips64p32le", "ppc", "ppc64", "ppc64le",
	"riscv", "riscv64", "s390", "s390x", "sparc", "sparc64", "wasm",
}


def detect_kind(filename: str) -> str:
	_, ext = os.path.splitext(filename)
	return EXTENSION_KIND.get(ext, "unknown")


def match_tag(tag: str, settings: BuildSettings) -> bool:
	if tag in (settings.goos, settings.goarch):
		return True
	if tag == "unix":
		return settings.goos in UNIX_OS
	if tag == "cgo":
		return settings.cgo_enabled
	if tag == "gc":
		return True
	if re.fullmatch(r"go1(\.\d+)?", tag):
		return True
	if settings.goos == "android" and tag == "linux":
		return True
	if settings.goos == "illumos" and tag == "solaris":
		return True
	if settings.goos == "ios" and tag == "darwin":
		return True
	return tag in settings.tags()


def good_os_arch_file(filename: str, settings: BuildSettings) -> bool:
	"""Apply the ``name_GOOS_GOARCH`` file name convention."""
	stem = os.path.splitext(filename)[0]
	i = stem.find("_")
	if i < 0:
		return True
	parts = stem[i:].split("_")
	if parts and parts[-1] == "test":
		parts = parts[:-1]
	n = len(parts)
	if n >= 2 and parts[n - 2] in KNOWN_OS and parts[n - 1] in KNOWN_ARCH:
		return match_tag(parts[n - 2], settings) and match_tag(parts[n - 1], settings)
	if n >= 1 and (parts[n - 1] in KNOWN_OS or parts[n - 1] in KNOWN_ARCH):
		return match_tag(parts[n - 1], settings)
	return True


_TOKEN = re.compile(r"\(|\)|&&|\|\||!|[A-Za-z0-9_.]+")


def eval_constraint(expr: str, has_tag: Callable[[str], bool]) -> bool:
	"""Evaluate a ``//go:build`` expression; ValueError when malformed."""
	tokens = _TOKEN.findall(expr)
	if "".join(tokens) != "".join(expr.split()):
		raise ValueError(f"invalid build constraint: {expr!r}")
	pos = 0

	def peek() -> Optional[str]:
		return tokens[pos] if pos < len(tokens) else None

	def take() -> str:
		nonlocal pos
		if pos >= len(tokens):
			raise ValueError(f"unexpected end of build constraint: {expr!r}")
		pos += 1
		return tokens[pos - 1]

	def parse_or() -> bool:
		result = parse_and()
		while peek() == "||":
			take()
			rhs = parse_and()
			result = result or rhs
		return result

	def parse_and() -> bool:
		result = parse_not()
		while peek() == "&&":
			take()
			rhs = parse_not()
			result = result and rhs
		return result

	def parse_not() -> bool:
		tok = take()
		if tok == "!":
			return not parse_not()
		if tok == "(":
			result = parse_or()
			if take() != ")":
				raise ValueError(f"missing ) in build constraint: {expr!r}")
			return result
		if tok in (")", "&&", "||"):
			raise ValueError(f"unexpected {tok!r} in build constraint: {expr!r}")
		return has_tag(tok)

	result = parse_or()
	if pos != len(tokens):
		raise ValueError(f"trailing tokens in build constraint: {expr!r}")
	return result


def _plus_build_to_expr(lines: List[str]) -> str:
	# "// +build a,b c" means (a && b) || c; separate lines are and-ed
	clauses = []
	for line in lines:
		ors = []
		for term in line.split():
			ands = [("!" + t[1:]) if t.startswith("!") else t for t in term.split(",") if t]
			ors.append("(" + " && ".join(ands) + ")")
		if ors:
			clauses.append("(" + " || ".join(ors) + ")")
	return " && ".join(clauses)


def build_constraint(comment_texts: List[str]) -> Optional[str]:
	plus = []
	for text in comment_texts:
		if text.startswith("//go:build"):
			return text[len("//go:build"):].strip()
		if text.startswith("// +build"):
			plus.append(text[len("// +build"):].strip())
	if plus:
		return _plus_build_to_expr(plus)
	return None


def find_module(start_dir: str) -> Optional[Tuple[str, str]]:
	"""Return ``(module_path, module_root)`` of the go.mod enclosing ``start_dir``."""
	d = os.path.abspath(start_dir)
	while True:
		gomod = os.path.join(d, "go.mod")
		if os.path.isfile(gomod):
			with open(gomod, "r", encoding="utf-8") as fh:
				for line in fh:
					m = re.match(r'^\s*module\s+"?([^"\s/][^"\s]*)"?', line)
					if m:
						return m.group(1), d
			return None
		parent = os.path.dirname(d)
		if parent == d:
			return None
		d = parent


def _candidates(import_path: str, source_dir: str, settings: BuildSettings) -> List[Tuple[str, str, bool, str]]:
	if os.path.isabs(import_path):
		return [(import_path, "", False, "")]
	if import_path in (".", "..") or import_path.startswith(("./", "../")):
		return [(os.path.normpath(os.path.join(source_dir, import_path)), "", False, "")]

	out: List[Tuple[str, str, bool, str]] = []
	mod = find_module(source_dir)
	if mod is not None:
		mod_path, mod_root = mod
		if import_path == mod_path or import_path.startswith(mod_path + "/"):
			rel = import_path[len(mod_path):].lstrip("/")
			out.append((os.path.join(mod_root, *rel.split("/")) if rel else mod_root, mod_root, False, mod_path))

	d = os.path.abspath(source_dir)
	while True:
		out.append((os.path.join(d, "vendor", *import_path.split("/")), d, False, ""))
		parent = os.path.dirname(d)
		if parent == d:
			break
		d = parent

	if settings.goroot:
		root = os.path.join(settings.goroot, "src")
		out.append((os.path.join(root, *import_path.split("/")), settings.goroot, True, ""))
	for p in settings.gopath_list():
		out.append((os.path.join(p, "src", *import_path.split("/")), p, False, ""))
	return out


def locate(import_path: str, source_dir: str, settings: Optional[BuildSettings] = None) -> PackageIdentity:
	"""Resolve an import path as if imported from code in ``source_dir``."""
	settings = settings or BuildSettings()
	if not import_path:
		raise ImportNotFoundError(import_path, reason="empty import path")
	searched = []
	for directory, root, goroot, module in _candidates(import_path, source_dir, settings):
		searched.append(directory)
		if os.path.isdir(directory):
			logger.debug("resolved %s to %s", import_path, directory)
			return scan_package_dir(import_path, directory, settings, root=root, goroot=goroot, module=module)
	raise ImportNotFoundError(import_path, searched)


def scan_package_dir(
	import_path: str,
	directory: str,
	settings: Optional[BuildSettings] = None,
	root: str = "",
	goroot: bool = False,
	module: str = "",
) -> PackageIdentity:
	"""Classify the files of one package directory."""
	settings = settings or BuildSettings()
	lists: Dict[str, List[str]] = {
		k: [] for k in (
			"go_files", "cgo_files", "ignored_go_files", "test_go_files", "xtest_go_files",
			"c_files", "cxx_files", "m_files", "h_files", "s_files", "swig_files", "syso_files",
		)
	}
	kind_list = {
		"c": "c_files", "cxx": "cxx_files", "m": "m_files", "h": "h_files",
		"s": "s_files", "swig": "swig_files", "syso": "syso_files",
	}
	imports: set = set()
	test_imports: set = set()
	name = ""
	first_file = ""

	try:
		entries = sorted(os.listdir(directory))
	except OSError as e:
		raise ImportNotFoundError(import_path, [directory], reason=e.strerror or str(e)) from e

	for filename in entries:
		path = os.path.join(directory, filename)
		if filename.startswith(("_", ".")) or not os.path.isfile(path):
			continue
		kind = detect_kind(filename)
		if kind == "unknown":
			continue
		if not good_os_arch_file(filename, settings):
			if kind == "go":
				lists["ignored_go_files"].append(filename)
			continue
		if kind != "go":
			lists[kind_list[kind]].append(filename)
			continue

		try:
			sf = parse_file(FileSet(), path, mode=ParseMode.IMPORTS_ONLY | ParseMode.PARSE_COMMENTS)
		except ParseError as e:
			# leave it to the build to report the syntax error
			logger.warning("unreadable header in %s: %s", path, e)
			lists["go_files"].append(filename)
			continue

		header = [c.text for g in sf.comments for c in g.comments if sf.name_node is None or c.end_byte < sf.name_node.start_byte]
		expr = build_constraint(header)
		if expr:
			try:
				ok = eval_constraint(expr, lambda tag: match_tag(tag, settings))
			except ValueError as e:
				logger.warning("%s: %s", path, e)
				ok = False
			if not ok:
				lists["ignored_go_files"].append(filename)
				continue

		pkg = sf.name
		if pkg == "documentation":
			lists["ignored_go_files"].append(filename)
			continue
		is_test = filename.endswith("_test.go")
		is_xtest = is_test and pkg.endswith("_test") and pkg != name
		base = pkg[: -len("_test")] if is_xtest else pkg
		if not name:
			name, first_file = base, filename
		elif base != name:
			raise MultiplePackageError(import_path, directory, [name, base], [first_file, filename])

		file_imports = [s.path for s in sf.imports]
		if "C" in file_imports and not is_test:
			if not settings.cgo_enabled:
				lists["ignored_go_files"].append(filename)
				continue
			lists["cgo_files"].append(filename)
		elif is_xtest:
			lists["xtest_go_files"].append(filename)
		elif is_test:
			lists["test_go_files"].append(filename)
		else:
			lists["go_files"].append(filename)
		(test_imports if is_test else imports).update(p for p in file_imports if p != "C")

	if not (lists["go_files"] or lists["cgo_files"] or lists["test_go_files"] or lists["xtest_go_files"]):
		raise NoGoFilesError(import_path, directory)

	return PackageIdentity(
		import_path=import_path,
		name=name,
		dir=directory,
		root=root,
		goroot=goroot,
		module=module,
		imports=sorted(imports),
		test_imports=sorted(test_imports),
		**lists,
	)
