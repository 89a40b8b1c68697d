"""
Signature services for the signflow signing core

This package loads certificate containers and applies visual and
cryptographic signatures to PDF documents.
"""

from .crypto_context import CryptoContext
from .certificate_extractor import CertificateExtractor, Identity
from .pdf_signing_engine import PdfSigningEngine, EmbeddedSignatureInfo

__all__ = [
    'CryptoContext',
    'CertificateExtractor',
    'Identity',
    'PdfSigningEngine',
    'EmbeddedSignatureInfo'
]
