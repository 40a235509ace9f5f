from __future__ import annotations

from typing import Dict, List

from .model import MethodSet, PackageFacts, Value
from .package import Package


def summarize_values(kind: str, values: List[Value]) -> List[str]:
	parts: List[str] = []
	for v in values:
		parts.append(f"  {kind} ({', '.join(v.names)})")
	return parts


def summarize_method_set(ms: MethodSet) -> str:
	lines = [f"Method set {ms.name}: {ms.len()} methods"]
	for name in ms.names():
		lines.append(f"  {ms.methods[name]}")
	return "\n".join(lines)


def summarize_package(pkg: Package) -> str:
	docs = pkg.docs()
	parts: List[str] = []
	parts.append(f"Package {pkg.name} ({pkg.import_path}) at {pkg.dir}")
	synopsis = pkg.synopsis()
	if synopsis:
		parts.append(f"  {synopsis}")
	parts.extend(summarize_values("const", docs.constants()))
	parts.extend(summarize_values("var", docs.variables()))
	funcs = pkg.functions()
	if funcs:
		parts.append(f"  Functions: {', '.join(f.name for f in funcs)}")
	for t in docs.types():
		line = f"  type {t.name}"
		if t.methods:
			line += f": {', '.join(m.name for m in t.methods)}"
		parts.append(line)
	for tag, notes in sorted(docs.notes().items()):
		for n in notes:
			parts.append(f"  {tag}({n.uid}): {n.body.strip()}")
	return "\n".join(parts)


def package_facts(pkg: Package) -> PackageFacts:
	docs = pkg.docs()
	method_sets: Dict[str, List[str]] = {
		name: ms.names() for name, ms in pkg.methods().items()
	}
	return PackageFacts(
		import_path=pkg.import_path,
		name=pkg.name,
		dir=pkg.dir,
		synopsis=pkg.synopsis(),
		files=pkg.files().names(),
		constants=docs.constants(),
		variables=docs.variables(),
		functions=[f.name for f in pkg.functions()],
		types=docs.types(),
		method_sets=method_sets,
		notes=docs.notes(),
	)
