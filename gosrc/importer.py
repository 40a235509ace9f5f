"""Cross-package import resolution for the type checker."""

from __future__ import annotations

import glob
import logging
import os
import re
import threading
from typing import Dict, Optional, Protocol

from pydantic import BaseModel

from .config import BuildSettings
from .errors import ImportNotFoundError
from .fs_scan import locate


logger = logging.getLogger(__name__)


class ImportedPackage(BaseModel):
	path: str
	name: str
	dir: str = ""


class Importer(Protocol):
	def import_(self, path: str) -> ImportedPackage:
		...


STD_PACKAGES = frozenset("""
archive/tar archive/zip bufio bytes cmp compress/bzip2 compress/flate compress/gzip
compress/lzw compress/zlib container/heap container/list container/ring context crypto
crypto/aes crypto/cipher crypto/des crypto/dsa crypto/ecdh crypto/ecdsa crypto/ed25519
crypto/elliptic crypto/hmac crypto/md5 crypto/rand crypto/rc4 crypto/rsa crypto/sha1
crypto/sha256 crypto/sha512 crypto/subtle crypto/tls crypto/x509 crypto/x509/pkix
database/sql database/sql/driver debug/buildinfo debug/dwarf debug/elf debug/gosym
debug/macho debug/pe debug/plan9obj embed encoding encoding/ascii85 encoding/asn1
encoding/base32 encoding/base64 encoding/binary encoding/csv encoding/gob encoding/hex
encoding/json encoding/pem encoding/xml errors expvar flag fmt go/ast go/build
go/build/constraint go/constant go/doc go/doc/comment go/format go/importer go/parser
go/printer go/scanner go/token go/types go/version hash hash/adler32 hash/crc32
hash/crc64 hash/fnv hash/maphash html html/template image image/color image/color/palette
image/draw image/gif image/jpeg image/png index/suffixarray io io/fs io/ioutil iter log
log/slog log/syslog maps math math/big math/bits math/cmplx math/rand math/rand/v2 mime
mime/multipart mime/quotedprintable net net/http net/http/cgi net/http/cookiejar
net/http/fcgi net/http/httptest net/http/httptrace net/http/httputil net/http/pprof
net/mail net/netip net/rpc net/rpc/jsonrpc net/smtp net/textproto net/url os os/exec
os/signal os/user path path/filepath plugin reflect regexp regexp/syntax runtime
runtime/cgo runtime/coverage runtime/debug runtime/metrics runtime/pprof runtime/race
runtime/trace slices sort strconv strings structs sync sync/atomic syscall testing
testing/fstest testing/iotest testing/quick testing/slogtest text/scanner text/tabwriter
text/template text/template/parse time time/tzdata unicode unicode/utf16 unicode/utf8
unique unsafe weak
""".split())


def default_package_name(path: str) -> str:
	"""Package name implied by an import path when the source is not at hand."""
	parts = [p for p in path.split("/") if p]
	if not parts:
		return ""
	name = parts[-1]
	if re.fullmatch(r"v\d+", name) and len(parts) > 1:
		name = parts[-2]
	name = re.sub(r"\.v\d+$", "", name)
	name = re.sub(r"^go-", "", name)
	return re.sub(r"[^A-Za-z0-9_]", "_", name)


def _escape_module_path(path: str) -> str:
	return re.sub(r"[A-Z]", lambda m: "!" + m.group(0).lower(), path)


class DefaultImporter:
	"""Resolve imports against the module, vendor, GOROOT, GOPATH and module cache.

	Standard library paths resolve by name when no Go installation is present.
	"""

	def __init__(self, settings: Optional[BuildSettings] = None, source_dir: Optional[str] = None) -> None:
		self.settings = settings or BuildSettings()
		self.source_dir = source_dir or os.getcwd()
		self._cache: Dict[str, ImportedPackage] = {}
		self._lock = threading.Lock()

	def import_(self, path: str) -> ImportedPackage:
		with self._lock:
			cached = self._cache.get(path)
		if cached is not None:
			return cached
		pkg = self._resolve(path)
		with self._lock:
			self._cache[path] = pkg
		return pkg

	def _resolve(self, path: str) -> ImportedPackage:
		if path in ("C", "unsafe"):
			return ImportedPackage(path=path, name=path)
		try:
			ident = locate(path, self.source_dir, self.settings)
			return ImportedPackage(path=path, name=ident.name, dir=ident.dir)
		except ImportNotFoundError as e:
			if path in STD_PACKAGES:
				return ImportedPackage(path=path, name=default_package_name(path))
			cached = self._module_cache_dir(path)
			if cached is None:
				raise
			logger.debug("resolved %s from module cache %s", path, cached)
			try:
				ident = locate(cached, self.source_dir, self.settings)
			except ImportNotFoundError:
				raise e
			return ImportedPackage(path=path, name=ident.name, dir=ident.dir)

	def _module_cache_dir(self, path: str) -> Optional[str]:
		modcache = self.settings.modcache_dir()
		if not modcache:
			return None
		parts = path.split("/")
		for i in range(len(parts), 0, -1):
			prefix = _escape_module_path("/".join(parts[:i]))
			matches = sorted(glob.glob(os.path.join(modcache, *prefix.split("/")) + "@*"))
			if matches:
				candidate = os.path.join(matches[-1], *parts[i:])
				if os.path.isdir(candidate):
					return candidate
		return None
