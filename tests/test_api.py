from fastapi.testclient import TestClient

from api import create_app
from conftest import TESTDATA


client = TestClient(create_app())


def test_package_facts():
	resp = client.post("/package", json={"import_path": "./tpkg", "source_dir": TESTDATA})
	assert resp.status_code == 200
	body = resp.json()
	assert body["name"] == "tpkg"
	assert body["synopsis"] == "Package tpkg is a small package used to exercise gosrc."
	assert body["functions"] == ["Concat", "NewPublicStruct", "Sum", "Testicular"]
	assert body["method_sets"]["PublicStruct"] == ["FuncOne", "FuncOneP", "FuncTwo", "FuncTwoP"]
	assert [c["names"] for c in body["constants"]][0] == ["ConstantOne", "ConstantTwo", "ConstantThree"]
	assert "HELLO" in body["notes"]


def test_method_set():
	resp = client.post("/methods", json={
		"import_path": "example.com/tpkg",
		"source_dir": TESTDATA + "/tpkg",
		"type_name": "PublicStruct",
	})
	assert resp.status_code == 200
	body = resp.json()
	assert body["methods"] == ["FuncOne", "FuncOneP", "FuncTwo", "FuncTwoP"]
	assert body["signatures"][0] == "func (tpkg.PublicStruct).FuncOne()"
	assert body["signatures"][3] == "func (*tpkg.PublicStruct).FuncTwoP(s string) error"


def test_missing_package_is_404():
	resp = client.post("/package", json={"import_path": "./nope", "source_dir": TESTDATA})
	assert resp.status_code == 404
	assert "nope" in resp.json()["detail"]


def test_lookup_errors():
	base = {"import_path": "./tpkg", "source_dir": TESTDATA}
	resp = client.post("/methods", json=dict(base, type_name="Missing"))
	assert resp.status_code == 404
	resp = client.post("/methods", json=dict(base, type_name="privateStruct"))
	assert resp.status_code == 403
	assert resp.json()["detail"] == "named type was not exported: privateStruct"


def test_type_errors_are_422(write_pkg):
	directory = write_pkg({"p.go": "package p\n\nvar X Missing\n"})
	resp = client.post("/package", json={"import_path": directory, "source_dir": directory})
	assert resp.status_code == 422
	assert "undefined: Missing" in resp.json()["detail"]
