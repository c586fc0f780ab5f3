"""
FastAPI Certificate Verification Service
Main application with all API endpoints
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.requests import Request

from app.artifacts import ArtifactReference, ArtifactResolver, normalize_url_prefix
from app.certificate_generator import CertificateGenerator, check_file_name
from app.courses import CoursePolicy
from app.errors import NotFound, StoreUnavailable, VerificationError
from app.record_store import open_record_store
from app.verification import Verifier, VerifiedCertificate


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---- Environment ----

RECORD_STORE_PATH = os.getenv("RECORD_STORE_PATH", "data/certificates.jsonl")
CERTIFICATES_DIR = os.getenv("CERTIFICATES_DIR", "certificates")
CERTIFICATE_URL_PREFIX = normalize_url_prefix(os.getenv("CERTIFICATE_URL_PREFIX", "/certificates"))
CERTIFICATE_PREFIX = os.getenv("CERTIFICATE_PREFIX", "OSHEQ")
TEMPLATE_IMAGE = os.getenv("CERTIFICATE_TEMPLATE_IMAGE") or None
CERTIFICATE_TITLE = os.getenv("CERTIFICATE_TITLE", "OSHEQ TRAINING")
ARTIFACT_POLICY = os.getenv("ARTIFACT_POLICY", "generate").strip().lower()
NAME_MATCH = os.getenv("NAME_MATCH", "insensitive").strip().lower()
APP_ENV = os.getenv("APP_ENV", "production").strip().lower()

# Pre-existing artifacts may be cached by clients for one day.
ARTIFACT_CACHE_SECONDS = 86400

# Connection states reported by /api/test-db, numbered like MongoDB driver ready states.
STORE_DISCONNECTED = 0
STORE_CONNECTED = 1

START_TIME = time.time()


# Initialize collaborators
course_policy = CoursePolicy.from_env()
record_store = open_record_store(RECORD_STORE_PATH, courses=course_policy, prefix=CERTIFICATE_PREFIX)
verifier = Verifier(record_store, courses=course_policy, name_match=NAME_MATCH)
cert_generator = CertificateGenerator(
    output_dir=CERTIFICATES_DIR,
    template_path=TEMPLATE_IMAGE,
    title=CERTIFICATE_TITLE,
)
resolver = ArtifactResolver(cert_generator, policy=ARTIFACT_POLICY, url_prefix=CERTIFICATE_URL_PREFIX)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    cert_generator.ensure_output_dir()
    logger.info(
        "Serving certificates from %s (policy=%s, records=%s)",
        cert_generator.output_dir, resolver.policy, record_store.path,
    )
    yield


app = FastAPI(
    title="Certificate Verification Service",
    description="Verify issued certificates and serve their PDF documents",
    version="1.0.0",
    lifespan=lifespan,
)

origins_raw = os.getenv("CORS_ALLOW_ORIGINS", "*")
allow_origins: List[str] = [o.strip() for o in origins_raw.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins if allow_origins else ["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["Content-Type"],
)


def _error_body(message: str, cause: Optional[BaseException] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if APP_ENV == "development" and cause is not None:
        body["error"] = str(cause)
    return body


@app.exception_handler(VerificationError)
def handle_verification_error(request: Request, exc: VerificationError):
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.cause))


def _certificate_payload(certificate: VerifiedCertificate, artifact: ArtifactReference) -> Dict[str, Any]:
    return {
        "holderName": certificate.holder_name,
        "certificateNumber": certificate.certificate_number,
        "courseName": certificate.course_name,
        "dateOfIssue": certificate.date_of_issue,
        "dateOfBirth": certificate.date_of_birth,
        "pdfFileName": artifact.file_name,
        "pdfExists": artifact.exists,
        "pdfUrl": artifact.url if artifact.exists else None,
        "pdfGenerated": artifact.generated,
        "pdfGenerationFailed": artifact.generation_failed,
    }


def _verify_and_resolve(username: Optional[str], certificate_number: Optional[str]):
    try:
        certificate = verifier.verify(username, certificate_number)
        artifact = resolver.resolve(certificate)
    except VerificationError:
        raise
    except Exception as e:
        logger.exception("Unexpected error while verifying certificate %s", certificate_number)
        raise StoreUnavailable(cause=e) from e
    return certificate, artifact


@app.get("/api/certificates/verify")
def verify_certificate(
    username: Optional[str] = Query(None, description="Certificate holder name"),
    certificate_number: Optional[str] = Query(None, alias="certificateNumber", description="Certificate number, e.g. OSHEQ-1001"),
) -> Dict[str, Any]:
    """
    Verify a certificate and return its data

    Returns:
        Certificate data plus a reference to its PDF

    Raises:
        VerificationError: Rendered as a ``success: false`` body by the handler above
    """
    certificate, artifact = _verify_and_resolve(username, certificate_number)
    return {"success": True, "certificate": _certificate_payload(certificate, artifact)}


@app.get("/api/certificates/download")
def download_certificate(
    username: Optional[str] = Query(None, description="Certificate holder name"),
    certificate_number: Optional[str] = Query(None, alias="certificateNumber", description="Certificate number"),
):
    """
    Verify a certificate and return its PDF inline
    """
    certificate, artifact = _verify_and_resolve(username, certificate_number)
    if not artifact.exists:
        if artifact.generation_failed:
            raise VerificationError("Certificate PDF could not be generated")
        raise NotFound("Certificate PDF not found")

    return FileResponse(
        path=artifact.path,
        media_type="application/pdf",
        filename=artifact.file_name,
        content_disposition_type="inline",
    )


@app.get(f"{CERTIFICATE_URL_PREFIX}/{{file_name}}")
def get_certificate_file(file_name: str):
    """
    Serve a previously published certificate PDF
    """
    try:
        name = check_file_name(file_name)
    except ValueError:
        raise NotFound("Certificate PDF not found")

    if not cert_generator.certificate_exists(name):
        raise NotFound("Certificate PDF not found")

    return FileResponse(
        path=cert_generator.get_certificate_path(name),
        media_type="application/pdf",
        filename=name,
        content_disposition_type="inline",
        headers={"Cache-Control": f"public, max-age={ARTIFACT_CACHE_SECONDS}"},
    )


@app.get("/health")
def health_check() -> Dict[str, Any]:
    """
    Health check endpoint for monitoring

    Returns:
        Uptime and record store connectivity
    """
    return {
        "status": "healthy",
        "uptime": round(time.time() - START_TIME, 3),
        "recordStore": {
            "connected": record_store.ping(),
            "path": str(record_store.path),
        },
    }


@app.get("/api/test-db")
def record_store_check():
    """
    List the collections the record store exposes
    """
    try:
        collections = record_store.list_collections()
    except (OSError, ValueError) as e:
        logger.warning("Record store check failed: %s", e)
        body: Dict[str, Any] = {"connected": False, "state": STORE_DISCONNECTED, "message": "Record store is NOT connected"}
        if APP_ENV == "development":
            body["error"] = str(e)
        return JSONResponse(status_code=500, content=body)

    return {"connected": True, "state": STORE_CONNECTED, "message": "Record store connected", "collections": collections}


# Run with: uvicorn app.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
