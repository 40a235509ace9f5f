from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from gosrc.context import Context
from gosrc.errors import GoSrcError
from gosrc.summarize import package_facts, summarize_method_set, summarize_package


def _context(args: argparse.Namespace) -> Context:
	return Context.from_dir(args.dir) if args.dir else Context.from_work_dir()


def cmd_show(args: argparse.Namespace) -> None:
	pkg = _context(args).import_package(args.import_path)
	print(summarize_package(pkg))


def cmd_methods(args: argparse.Namespace) -> None:
	pkg = _context(args).import_package(args.import_path)
	if args.type:
		print(summarize_method_set(pkg.method_set(args.type)))
		return
	for _, ms in sorted(pkg.methods().items()):
		print(summarize_method_set(ms))


def cmd_facts(args: argparse.Namespace) -> None:
	pkg = _context(args).import_package(args.import_path)
	print(package_facts(pkg).model_dump_json(indent=2))


def cmd_serve(args: argparse.Namespace) -> None:
	uvicorn.run("api:app", host=args.host, port=args.port, reload=args.reload)


def main(argv=None) -> int:
	parser = argparse.ArgumentParser(prog="gosrc")
	parser.add_argument("--dir", default="", help="Source directory imports are resolved from")
	parser.add_argument("-v", "--verbose", action="store_true", help="Log analysis stages")
	sub = parser.add_subparsers(dest="cmd", required=True)

	pshow = sub.add_parser("show", help="Print a summary of a package")
	pshow.add_argument("import_path")
	pshow.set_defaults(func=cmd_show)

	pm = sub.add_parser("methods", help="Print method sets of a package's types")
	pm.add_argument("import_path")
	pm.add_argument("type", nargs="?", default="")
	pm.set_defaults(func=cmd_methods)

	pf = sub.add_parser("facts", help="Print package facts JSON")
	pf.add_argument("import_path")
	pf.set_defaults(func=cmd_facts)

	ps = sub.add_parser("serve", help="Run FastAPI server")
	ps.add_argument("--host", default="127.0.0.1")
	ps.add_argument("--port", type=int, default=8000)
	ps.add_argument("--reload", action="store_true")
	ps.set_defaults(func=cmd_serve)

	args = parser.parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.WARNING,
		format="%(levelname)s %(name)s: %(message)s",
	)
	try:
		args.func(args)
	except GoSrcError as e:
		print(f"gosrc: {e}", file=sys.stderr)
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())
