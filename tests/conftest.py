import json

import pytest
from fastapi.testclient import TestClient

from app import main
from app.artifacts import ArtifactResolver
from app.certificate_generator import CertificateGenerator
from app.courses import CoursePolicy
from app.record_store import JSONRecordStore
from app.verification import Verifier


RECORDS = [
    {
        "certificateNumber": "OSHEQ-1001",
        "username": "jane doe",
        "courseName": "OSHEQ Training",
        "dateofissue": "01/01/2024",
        "dateofbirth": "02/02/1990",
    },
    {"certificateNumber": "OSHEQ-1002", "date": "15/03/2023", "username": "Ahmed Khan"},
    {
        "certificateNumber": "OSHEQ-1003",
        "holderName": "Maria Lopez",
        "courseName": "OSHEQ Advanced Training",
        "dateOfIssue": "20/06/2024",
        "dateOfBirth": "11/09/1985",
        "artifactFileName": "maria-lopez-OSHEQ-1003.pdf",
    },
]


@pytest.fixture
def records_path(tmp_path):
    path = tmp_path / "certificates.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in RECORDS) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def courses():
    return CoursePolicy()


@pytest.fixture
def store(records_path, courses):
    return JSONRecordStore(str(records_path), courses=courses)


@pytest.fixture
def verifier(store, courses):
    return Verifier(store, courses=courses)


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "certificates"
    path.mkdir()
    return path


@pytest.fixture
def generator(output_dir):
    return CertificateGenerator(output_dir=str(output_dir))


@pytest.fixture
def resolver(generator):
    return ArtifactResolver(generator, policy="generate")


@pytest.fixture
def client(monkeypatch, store, verifier, generator, resolver):
    monkeypatch.setattr(main, "record_store", store)
    monkeypatch.setattr(main, "verifier", verifier)
    monkeypatch.setattr(main, "cert_generator", generator)
    monkeypatch.setattr(main, "resolver", resolver)
    monkeypatch.setattr(main, "APP_ENV", "production")
    return TestClient(main.app)
