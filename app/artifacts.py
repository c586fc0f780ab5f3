"""
Artifact resolver: decide which PDF belongs to a verified certificate and,
depending on the configured policy, generate it when it is missing.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from app.certificate_generator import CertificateGenerator, check_file_name
from app.errors import GenerationFailed, StoreUnavailable
from app.verification import VerifiedCertificate


logger = logging.getLogger(__name__)

POLICY_EXISTENCE = "existence"
POLICY_GENERATE = "generate"
POLICIES = (POLICY_EXISTENCE, POLICY_GENERATE)


def normalize_url_prefix(url_prefix: Optional[str]) -> str:
    """Return ``/segment`` for a non-empty prefix and ``""`` for the site root."""
    stripped = (url_prefix or "").strip().strip("/")
    return f"/{stripped}" if stripped else ""


@dataclass(frozen=True)
class ArtifactReference:
    file_name: str
    exists: bool
    url: Optional[str] = None
    path: Optional[str] = None
    generated: bool = False
    generation_failed: bool = False


class ArtifactResolver:
    """Resolve verified certificates to PDF artifacts in a flat directory."""

    def __init__(self, generator: CertificateGenerator, policy: str = POLICY_GENERATE,
                 url_prefix: str = "/certificates"):
        if policy not in POLICIES:
            raise ValueError(f"Unknown artifact policy: {policy}")
        self.generator = generator
        self.policy = policy
        self.url_prefix = normalize_url_prefix(url_prefix)

    def url_for(self, file_name: str) -> str:
        return f"{self.url_prefix}/{file_name}"

    def _found(self, file_name: str, generated: bool = False) -> ArtifactReference:
        return ArtifactReference(
            file_name=file_name,
            exists=True,
            url=self.url_for(file_name),
            path=self.generator.get_certificate_path(file_name),
            generated=generated,
        )

    def resolve(self, certificate: VerifiedCertificate) -> ArtifactReference:
        file_name = certificate.expected_file_name
        output_dir = self.generator.output_dir
        if os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise StoreUnavailable(cause=NotADirectoryError(output_dir))

        try:
            check_file_name(file_name)
        except ValueError:
            logger.warning("Certificate %s has an unusable file name %r", certificate.certificate_number, file_name)
            return ArtifactReference(file_name=file_name, exists=False,
                                     generation_failed=self.policy == POLICY_GENERATE)

        if self.generator.certificate_exists(file_name):
            return self._found(file_name)

        if self.policy == POLICY_EXISTENCE:
            return ArtifactReference(file_name=file_name, exists=False)

        try:
            self.generator.generate_certificate(certificate, file_name)
        except GenerationFailed as e:
            logger.warning("Could not generate %s for certificate %s: %s",
                           file_name, certificate.certificate_number, e.cause)
            return ArtifactReference(file_name=file_name, exists=False, generation_failed=True)
        return self._found(file_name, generated=True)
