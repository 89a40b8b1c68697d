"""
Cryptographic context handed explicitly to the certificate and PDF services.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict

from asn1crypto import algos

from ...models.document import SignatureKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


DEFAULT_REASONS = {
    SignatureKind.ADVANCED: "Advanced Electronic Signature",
    SignatureKind.QUALIFIED: "Qualified Electronic Signature",
}


@dataclass(frozen=True)
class CryptoContext:
    """Algorithms, clock and labels used when producing signatures"""

    digest_algorithm: str = "sha256"
    clock: Callable[[], datetime] = _utcnow
    reasons: Dict[SignatureKind, str] = field(default_factory=lambda: dict(DEFAULT_REASONS))

    @property
    def signature_mechanism(self) -> algos.SignedDigestAlgorithm:
        # RSA PKCS#1 v1.5 over the configured digest, e.g. sha256_rsa
        return algos.SignedDigestAlgorithm({'algorithm': f"{self.digest_algorithm}_rsa"})

    def now(self) -> datetime:
        return self.clock()

    def reason_for(self, kind: SignatureKind) -> str:
        try:
            return self.reasons[kind]
        except KeyError:
            raise ValueError(f"No signing reason defined for {kind.value}")
