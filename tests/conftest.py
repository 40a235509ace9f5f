import os
from textwrap import dedent

import pytest

from gosrc.errors import ImportNotFoundError
from gosrc.importer import ImportedPackage, default_package_name


TESTDATA = os.path.join(os.path.dirname(os.path.abspath(__file__)), "testdata")
TPKG = os.path.join(TESTDATA, "tpkg")


class MapImporter:
	"""Resolves only the import paths it was given."""

	def __init__(self, *paths):
		self.paths = set(paths)
		self.calls = []

	def import_(self, path):
		self.calls.append(path)
		if path not in self.paths:
			raise ImportNotFoundError(path)
		return ImportedPackage(path=path, name=default_package_name(path))


@pytest.fixture
def write_pkg(tmp_path):
	"""Write ``{filename: source}`` into a fresh directory and return its path."""

	def write(files, name="p"):
		d = tmp_path / name
		d.mkdir(exist_ok=True)
		for filename, src in files.items():
			(d / filename).write_text(dedent(src).lstrip())
		return str(d)

	return write
