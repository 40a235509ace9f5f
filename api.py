from __future__ import annotations

from typing import List

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from gosrc.context import Context
from gosrc.errors import (
	GoSrcError,
	ImportNotFoundError,
	NameNotFoundError,
	NotExportedError,
	PackageNotFoundError,
	ParseError,
	TypeCheckError,
)
from gosrc.model import Function, PackageFacts
from gosrc.package import Package
from gosrc.summarize import package_facts


app = FastAPI(title="Go Package Inspector")


class PackageRequest(BaseModel):
	import_path: str
	source_dir: str = ""


class MethodsRequest(PackageRequest):
	type_name: str


class MethodSetResult(BaseModel):
	name: str
	methods: List[str]
	signatures: List[str]


def _status(e: GoSrcError) -> int:
	if isinstance(e, (ImportNotFoundError, PackageNotFoundError, NameNotFoundError)):
		return 404
	if isinstance(e, NotExportedError):
		return 403
	if isinstance(e, (ParseError, TypeCheckError)):
		return 422
	return 500


def _import(req: PackageRequest) -> Package:
	ctx = Context.from_dir(req.source_dir) if req.source_dir else Context.from_work_dir()
	return ctx.import_package(req.import_path)


@app.post("/package", response_model=PackageFacts)
def package(req: PackageRequest) -> PackageFacts:
	try:
		return package_facts(_import(req))
	except GoSrcError as e:
		raise HTTPException(status_code=_status(e), detail=str(e)) from e


@app.post("/methods", response_model=MethodSetResult)
def methods(req: MethodsRequest) -> MethodSetResult:
	try:
		ms = _import(req).method_set(req.type_name)
	except GoSrcError as e:
		raise HTTPException(status_code=_status(e), detail=str(e)) from e
	funcs: List[Function] = [ms.methods[n] for n in ms.names()]
	return MethodSetResult(name=ms.name, methods=ms.names(), signatures=[str(f) for f in funcs])


def create_app() -> FastAPI:
	return app
