"""Management certificates: generation, thumbprints and lookup by thumbprint."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

logger = logging.getLogger(__name__)

CERTIFICATE_SUFFIXES = (".pem", ".crt", ".cer")


def generate_self_signed_certificate(
    common_name: str,
    *,
    organization_name: str | None = None,
    validity_days: int = 365,
    key_size: int = 2048,
    cert_path: str | Path | None = None,
    key_path: str | Path | None = None,
    combined_pem_path: str | Path | None = None,
) -> tuple[bytes, bytes]:
    """Generate a self-signed management certificate and its private key.

    The PEM bytes are always returned. Optionally the certificate, the key
    and/or a combined PEM are written to disk.

    Args:
        common_name: Common Name (CN) of the certificate subject.
        organization_name: Optional Organization Name (O) of the subject.
        validity_days: Offset in days from now for the expiration time.
        key_size: RSA key size in bits.
        cert_path: Where to write the certificate, if given.
        key_path: Where to write the private key, if given.
        combined_pem_path: Where to write certificate and key together, if given.

    Returns:
        A tuple ``(certificate_pem, private_key_pem)``.
    """
    if not common_name:
        raise ValueError("common_name must not be empty.")
    if (cert_path is None) != (key_path is None):
        raise ValueError("cert_path and key_path must be given together.")

    key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
    if organization_name:
        attributes.insert(0, x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization_name))
    name = x509.Name(attributes)
    now = datetime.now(timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=validity_days))
        .add_extension(
            x509.ExtendedKeyUsage([x509.oid.ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
        .sign(private_key=key, algorithm=hashes.SHA256())
    )

    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    if combined_pem_path is not None:
        Path(combined_pem_path).write_bytes(cert_pem + key_pem)
    if cert_path is not None and key_path is not None:
        Path(cert_path).write_bytes(cert_pem)
        Path(key_path).write_bytes(key_pem)

    return cert_pem, key_pem


def certificate_thumbprint(certificate: x509.Certificate) -> str:
    """Return the upper-case SHA-1 thumbprint used to identify the certificate."""
    return certificate.fingerprint(hashes.SHA1()).hex().upper()


def normalize_thumbprint(thumbprint: str) -> str:
    return "".join(thumbprint.split()).replace(":", "").upper()


def load_certificates(path: Path) -> list[x509.Certificate]:
    """Load every certificate in a PEM or DER file."""
    data = path.read_bytes()
    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificates(data)
    return [x509.load_der_x509_certificate(data)]


class CertificateStore(Protocol):
    def find(self, thumbprint: str) -> x509.Certificate | None:
        """Return the certificate with ``thumbprint``, or ``None``."""
        raise NotImplementedError


class DirectoryCertificateStore:
    """Finds management certificates by thumbprint in a directory."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def find(self, thumbprint: str) -> x509.Certificate | None:
        wanted = normalize_thumbprint(thumbprint)
        if not self._directory.is_dir():
            logger.warning("Certificate directory %s does not exist", self._directory)
            return None
        for path in sorted(self._directory.iterdir()):
            if path.suffix.lower() not in CERTIFICATE_SUFFIXES:
                continue
            try:
                certificates = load_certificates(path)
            except ValueError:
                logger.debug("Skipping unreadable certificate file %s", path)
                continue
            for certificate in certificates:
                if certificate_thumbprint(certificate) == wanted:
                    return certificate
        return None
