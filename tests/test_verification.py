import pytest

from app.errors import IdentityMismatch, MissingParameters, NotFound, StoreUnavailable
from app.record_store import JSONRecordStore
from app.verification import Verifier, names_match


def test_verify_any_casing(verifier):
    for claimed in ("jane doe", "Jane Doe", "JANE DOE", "  jAnE dOe "):
        certificate = verifier.verify(claimed, "OSHEQ-1001")
        assert certificate.holder_name == "jane doe"
        assert certificate.certificate_number == "OSHEQ-1001"
        assert certificate.course_name == "OSHEQ Training"
        assert certificate.date_of_issue == "01/01/2024"
        assert certificate.date_of_birth == "02/02/1990"
        assert certificate.artifact_file_name is None
        assert certificate.expected_file_name == "OSHEQ-1001.pdf"


def test_verify_substitutes_default_course(verifier):
    certificate = verifier.verify("Ahmed Khan", "OSHEQ-1002")

    assert certificate.course_name == "OSHEQ Training"
    assert certificate.date_of_issue == "15/03/2023"
    assert certificate.date_of_birth is None


def test_verify_keeps_stored_file_name(verifier):
    certificate = verifier.verify("maria lopez", "OSHEQ-1003")

    assert certificate.expected_file_name == "maria-lopez-OSHEQ-1003.pdf"


def test_verify_name_mismatch(verifier):
    with pytest.raises(IdentityMismatch):
        verifier.verify("John Doe", "OSHEQ-1001")


def test_verify_not_found(verifier):
    for claimed in ("jane doe", "Someone Else"):
        with pytest.raises(NotFound):
            verifier.verify(claimed, "OSHEQ-9999")


def test_certificate_number_is_not_normalized(verifier):
    with pytest.raises(NotFound):
        verifier.verify("jane doe", "osheq-1001")


class ExplodingStore(JSONRecordStore):
    calls = 0

    def find_by_certificate_number(self, certificate_number):
        ExplodingStore.calls += 1
        raise AssertionError("store must not be queried")


@pytest.mark.parametrize("holder_name,certificate_number", [
    (None, "OSHEQ-1001"),
    ("jane doe", None),
    ("", "OSHEQ-1001"),
    ("jane doe", "   "),
])
def test_missing_parameters_checked_before_store(tmp_path, holder_name, certificate_number):
    verifier = Verifier(ExplodingStore(str(tmp_path / "unused.jsonl")))

    with pytest.raises(MissingParameters):
        verifier.verify(holder_name, certificate_number)
    assert ExplodingStore.calls == 0


def test_store_failure_is_store_unavailable(tmp_path):
    verifier = Verifier(JSONRecordStore(str(tmp_path / "missing.jsonl")))

    with pytest.raises(StoreUnavailable) as excinfo:
        verifier.verify("jane doe", "OSHEQ-1001")
    assert isinstance(excinfo.value.cause, FileNotFoundError)


def test_corrupt_store_is_store_unavailable(tmp_path):
    path = tmp_path / "certificates.jsonl"
    path.write_text("{not json\n")

    with pytest.raises(StoreUnavailable):
        Verifier(JSONRecordStore(str(path))).verify("jane doe", "OSHEQ-1001")


def test_case_sensitive_policy(store):
    verifier = Verifier(store, name_match="sensitive")

    assert verifier.verify(" jane doe ", "OSHEQ-1001").holder_name == "jane doe"
    with pytest.raises(IdentityMismatch):
        verifier.verify("Jane Doe", "OSHEQ-1001")


def test_unknown_name_policy(store):
    with pytest.raises(ValueError):
        Verifier(store, name_match="fuzzy")


def test_names_match():
    assert names_match("Ana", " ana ")
    assert not names_match("Ana", "Anna")
    assert not names_match("Ana", "ana", policy="sensitive")
