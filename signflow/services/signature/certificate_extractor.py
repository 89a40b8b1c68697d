"""
Certificate Extraction Service

Loads password-protected PKCS#12 containers, selects the signing identity
and extracts X.509 certificate information. Validity is a local date check
only; no certificate authority is consulted.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import pkcs12

from .crypto_context import CryptoContext
from ...core.errors import CertificateLoadError, NoCertificateFound

logger = logging.getLogger(__name__)


NAME_ABBREVIATIONS = {
    "commonName": "CN",
    "organizationName": "O",
    "organizationalUnitName": "OU",
    "countryName": "C",
    "localityName": "L",
    "stateOrProvinceName": "ST",
    "emailAddress": "E",
}


@dataclass
class Identity:
    """Key material and certificates of an opened container"""
    private_key: Any
    certificate: Optional[x509.Certificate]
    additional_certificates: List[x509.Certificate] = field(default_factory=list)
    entries: List[Tuple[str, x509.Certificate]] = field(default_factory=list)

    def certificate_for(self, alias: str) -> x509.Certificate:
        for entry_alias, certificate in self.entries:
            if entry_alias == alias:
                return certificate
        raise NoCertificateFound(f"No certificate with alias {alias!r} in container")


class CertificateExtractor:
    """Service for reading signing identities out of certificate containers"""

    def __init__(self, context: CryptoContext):
        self.context = context

    def load(self, container_bytes: bytes, passphrase: Optional[str]) -> Identity:
        """
        Open a PKCS#12 container.

        Args:
            container_bytes: Raw .p12/.pfx content
            passphrase: Container password, None or empty for none

        Returns:
            The decrypted identity

        Raises:
            CertificateLoadError: malformed container or wrong passphrase
        """
        password = passphrase.encode("utf-8") if passphrase else None
        try:
            loaded = pkcs12.load_pkcs12(container_bytes, password)
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not open certificate container: {e}")
            raise CertificateLoadError(
                "Could not load certificate container: malformed data or wrong passphrase"
            ) from e

        entries = []
        candidates = ([loaded.cert] if loaded.cert is not None else []) + list(loaded.additional_certs)
        for index, entry in enumerate(candidates):
            alias = entry.friendly_name.decode("utf-8", "replace") if entry.friendly_name else f"entry-{index}"
            entries.append((alias, entry.certificate))

        identity = Identity(
            private_key=loaded.key,
            certificate=loaded.cert.certificate if loaded.cert is not None else None,
            additional_certificates=[c.certificate for c in loaded.additional_certs],
            entries=entries,
        )
        logger.info(f"Loaded certificate container with {len(entries)} entries")
        return identity

    def select_signing_entry(self, identity: Identity) -> str:
        """Pick the first enumerated entry; the key-bearing certificate comes first."""
        if not identity.entries:
            raise NoCertificateFound("No certificate found in the certificate container")
        alias = identity.entries[0][0]
        if len(identity.entries) > 1:
            logger.debug(f"Container holds {len(identity.entries)} entries, using first alias {alias!r}")
        return alias

    def extract_metadata(self, identity: Identity, alias: str) -> Dict[str, Any]:
        """
        Extract the certificate information recorded with a signature.

        Returns:
            Dictionary with serial_number, issuer, subject, not_before,
            not_after and a SHA-256 fingerprint
        """
        certificate = identity.certificate_for(alias)
        return {
            "serial_number": str(certificate.serial_number),
            "issuer": format_name(certificate.issuer),
            "subject": format_name(certificate.subject),
            "not_before": certificate.not_valid_before_utc,
            "not_after": certificate.not_valid_after_utc,
            "fingerprint": certificate.fingerprint(hashes.SHA256()).hex(),
        }

    def is_currently_valid(self, certificate: x509.Certificate, now: Optional[datetime] = None) -> bool:
        """Pure validity-window check."""
        now = now or self.context.now()
        valid = certificate.not_valid_before_utc <= now <= certificate.not_valid_after_utc
        if not valid:
            logger.warning(
                f"Certificate {certificate.serial_number} outside validity window "
                f"{certificate.not_valid_before_utc.isoformat()} - {certificate.not_valid_after_utc.isoformat()}"
            )
        return valid

    @staticmethod
    def signing_chain(identity: Identity) -> List[x509.Certificate]:
        """Leaf certificate first, then whatever else the container carried."""
        chain = [identity.certificate] if identity.certificate is not None else []
        return chain + list(identity.additional_certificates)


def format_name(name: x509.Name) -> str:
    """
    Format an X.509 Name as a readable string, e.g. "CN=Jane Doe, O=ACME, C=FR".
    """
    parts = []
    for attribute in name:
        oid_name = attribute.oid._name
        display_name = NAME_ABBREVIATIONS.get(oid_name, oid_name)
        parts.append(f"{display_name}={attribute.value}")
    return ", ".join(parts)
