"""
Test Configuration and Fixtures

Everything runs in memory: PDFs are drawn with reportlab, signature images
with Pillow and PKCS#12 containers are issued on the fly with cryptography.
"""

import base64
import io
import logging
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from PIL import Image, ImageDraw
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from signflow.api.deps import build_container
from signflow.schemas.document import SignRequest
from signflow.schemas.workflow import WorkflowSignerDto
from signflow.services.signature.certificate_extractor import CertificateExtractor
from signflow.services.signature.crypto_context import CryptoContext
from signflow.services.signature.pdf_signing_engine import PdfSigningEngine
from signflow.stores.memory import InMemoryBlobStore, InMemoryEntityStore
from signflow.stores.notifications import LoggingNotificationSink


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

PASSPHRASE = "s3cret-pass"


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = None):
        self.current = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def make_pdf(pages: int = 2) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    for number in range(1, pages + 1):
        pdf.drawString(72, 750, f"Service agreement - page {number}")
        pdf.drawString(72, 730, "Signed electronically by the parties below.")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def make_signature_image(mode: str = "RGBA") -> bytes:
    image = Image.new(mode, (240, 80), "white" if mode != "RGBA" else (255, 255, 255, 0))
    draw = ImageDraw.Draw(image)
    draw.line([(10, 60), (60, 20), (110, 60), (160, 20), (230, 50)], fill="black", width=4)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_certificate(common_name: str, key=None, not_before: datetime = None, days: int = 365,
                     issuer_key=None, issuer_name: x509.Name = None):
    key = key or rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Signflow Test"),
        x509.NameAttribute(NameOID.COUNTRY_NAME, "FR"),
    ])
    start = not_before or datetime.now(timezone.utc) - timedelta(days=1)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name or subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(start)
        .not_valid_after(start + timedelta(days=days))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(issuer_key or key, hashes.SHA256())
    )
    return key, certificate


def make_pkcs12(key, certificate, passphrase: str = PASSPHRASE, friendly_name: bytes = b"signer",
                extra_certificates=None) -> bytes:
    encryption = (
        serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
        if passphrase else serialization.NoEncryption()
    )
    return pkcs12.serialize_key_and_certificates(
        friendly_name, key, certificate, extra_certificates, encryption
    )


@pytest.fixture(scope="session")
def signer_identity():
    """RSA-2048 key and self-signed certificate of "Alice Martin" """
    return make_certificate("Alice Martin")


@pytest.fixture(scope="session")
def certificate_container(signer_identity) -> bytes:
    key, certificate = signer_identity
    return make_pkcs12(key, certificate)


@pytest.fixture(scope="session")
def certificate_container_b64(certificate_container) -> str:
    return base64.b64encode(certificate_container).decode("ascii")


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf()


@pytest.fixture
def signature_image() -> bytes:
    return make_signature_image()


@pytest.fixture
def signature_image_b64(signature_image) -> str:
    return base64.b64encode(signature_image).decode("ascii")


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def crypto_context(clock):
    return CryptoContext(clock=clock)


@pytest.fixture
def engine(crypto_context):
    return PdfSigningEngine(crypto_context)


@pytest.fixture
def extractor(crypto_context):
    return CertificateExtractor(crypto_context)


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def sink():
    return LoggingNotificationSink()


@pytest.fixture
def container(store, blobs, sink, crypto_context):
    return build_container(store=store, blobs=blobs, sink=sink, context=crypto_context)


@pytest.fixture
async def document(container, pdf_bytes):
    """A freshly uploaded two-page PDF"""
    return await container.documents.upload("agreement.pdf", pdf_bytes, uploaded_by="legal@example.com")


@pytest.fixture
def two_signers():
    return [
        WorkflowSignerDto(name="Alice Martin", email="alice@example.com", sign_order=1, required_kind="SIMPLE"),
        WorkflowSignerDto(name="Bob Durand", email="bob@example.com", sign_order=2, required_kind="ADVANCED"),
    ]


@pytest.fixture
def simple_request(document, signature_image_b64):
    def build(**overrides) -> SignRequest:
        values = dict(
            document_id=document.document_id,
            signer_name="Alice Martin",
            signer_email="alice@example.com",
            kind="SIMPLE",
            signature_image_base64=signature_image_b64,
            ip_address="203.0.113.7",
            user_agent="pytest",
        )
        values.update(overrides)
        return SignRequest(**values)
    return build


@pytest.fixture
def advanced_request(document, certificate_container_b64):
    def build(**overrides) -> SignRequest:
        values = dict(
            document_id=document.document_id,
            signer_name="Alice Martin",
            signer_email="alice@example.com",
            kind="ADVANCED",
            certificate_base64=certificate_container_b64,
            certificate_password=PASSPHRASE,
        )
        values.update(overrides)
        return SignRequest(**values)
    return build
