"""Queryable model of a single Go source package.

Modules:
- fs_scan.py: Locating packages and classifying their files.
- ast_parse.py: Go parsing into a syntax forest with comments.
- docextract.py: Documentation model, notes, examples and synopsis.
- checker.py: Declaration level type checking and annotation index.
- importer.py: Cross-package import resolution for the checker.
- methodset.py: Value and pointer method sets of named types.
- toolchain.py: The parse, document, type check pipeline.
- package.py: Lazily built package facade and its views.
- context.py: Search context for importing packages.
- summarize.py: Deterministic textual summaries and facts.
"""

__all__ = [
	"fs_scan",
	"ast_parse",
	"docextract",
	"checker",
	"importer",
	"methodset",
	"toolchain",
	"package",
	"context",
	"summarize",
	"config",
	"errors",
	"model",
]
