"""Error taxonomy for package loading, analysis and lookups.

Every error raised by gosrc derives from :class:`GoSrcError` and carries its
structured fields as attributes so callers can branch on the kind and inspect
the details without parsing messages.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
	from .model import Position


__all__ = [
	"GoSrcError",
	"ImportNotFoundError",
	"NoGoFilesError",
	"MultiplePackageError",
	"ParseError",
	"PackageNotFoundError",
	"TypeCheckError",
	"Diagnostic",
	"NameNotFoundError",
	"NotExportedError",
	"NotInitializedError",
]


class GoSrcError(Exception):
	"""Base class for all gosrc errors."""


class ImportNotFoundError(GoSrcError):
	def __init__(self, import_path: str, searched: Sequence[str] = (), reason: str = "") -> None:
		self.import_path = import_path
		self.searched: List[str] = list(searched)
		self.reason = reason
		if reason:
			message = f'cannot find package "{import_path}": {reason}'
		elif self.searched:
			message = f'cannot find package "{import_path}" in any of:\n\t' + "\n\t".join(self.searched)
		else:
			message = f'cannot find package "{import_path}"'
		super().__init__(message)


class NoGoFilesError(ImportNotFoundError):
	def __init__(self, import_path: str, directory: str) -> None:
		self.directory = directory
		super().__init__(import_path, reason=f"no buildable Go source files in {directory}")


class MultiplePackageError(ImportNotFoundError):
	def __init__(self, import_path: str, directory: str, packages: Sequence[str], files: Sequence[str]) -> None:
		self.directory = directory
		self.packages = list(packages)
		self.files = list(files)
		reason = (
			f"found packages {self.packages[0]} ({self.files[0]}) and "
			f"{self.packages[1]} ({self.files[1]}) in {directory}"
		)
		super().__init__(import_path, reason=reason)


class ParseError(GoSrcError):
	"""Malformed or unreadable source; ``position`` is None for I/O failures."""

	def __init__(self, filename: str, message: str, position: Optional["Position"] = None) -> None:
		self.filename = filename
		self.position = position
		self.msg = message
		where = str(position) if position is not None else filename
		super().__init__(f"{where}: {message}")


class PackageNotFoundError(GoSrcError):
	def __init__(self, package_name: str, directory: str) -> None:
		self.package_name = package_name
		self.directory = directory
		super().__init__(f'unable to find pkg "{package_name}" in the "{directory}" directory')


class Diagnostic:
	"""One type checker complaint."""

	def __init__(self, message: str, position: Optional["Position"] = None) -> None:
		self.message = message
		self.position = position

	def __str__(self) -> str:
		if self.position is None:
			return self.message
		return f"{self.position}: {self.message}"

	def __repr__(self) -> str:
		return f"Diagnostic({str(self)!r})"


class TypeCheckError(GoSrcError):
	"""Raised with the first diagnostic; ``diagnostics`` holds all of them."""

	def __init__(self, diagnostics: Sequence[Diagnostic]) -> None:
		self.diagnostics: List[Diagnostic] = list(diagnostics)
		self.diagnostic = self.diagnostics[0]
		extra = len(self.diagnostics) - 1
		message = str(self.diagnostic)
		if extra:
			message += f" (and {extra} more errors)"
		super().__init__(message)


class NameNotFoundError(GoSrcError, LookupError):
	def __init__(self, name: str) -> None:
		self.name = name
		super().__init__(f"named type was not found: {name}")


class NotExportedError(GoSrcError, LookupError):
	def __init__(self, name: str) -> None:
		self.name = name
		super().__init__(f"named type was not exported: {name}")


class NotInitializedError(GoSrcError):
	def __init__(self, what: str = "package") -> None:
		super().__init__(f"{what} has not been initialized")
