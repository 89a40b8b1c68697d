"""
PDF Signing Engine

Mutates PDF byte streams through incremental updates only: bytes of the
input document are never rewritten, new content is appended after them.

- Visual (SIMPLE) signatures draw an image onto a page.
- Cryptographic (ADVANCED/QUALIFIED) signatures embed a detached PKCS#7
  envelope over the document byte range, then optionally stamp a
  "Signed by" box in a separate incremental revision.
- Embedded signature dictionaries can be enumerated for verification.
"""
import io
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional

from PIL import Image, UnidentifiedImageError
from asn1crypto import cms, keys as asn1_keys, x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from pyhanko.pdf_utils import generic
from pyhanko.pdf_utils.generic import pdf_name
from pyhanko.pdf_utils.images import pil_image
from pyhanko.pdf_utils.incremental_writer import IncrementalPdfFileWriter
from pyhanko.pdf_utils.reader import PdfFileReader
from pyhanko.sign import fields, signers
from pyhanko_certvalidator.registry import SimpleCertificateStore

from .crypto_context import CryptoContext
from ...core.errors import SigningError, UnsupportedSignatureKind, VerificationError
from ...models.document import Placement, SignatureKind

logger = logging.getLogger(__name__)

# Light blue box behind the "Signed by" caption
STAMP_FILL_RGB = (0.9, 0.9, 1.0)
STAMP_FONT_SIZE = 10


@dataclass(frozen=True)
class EmbeddedSignatureInfo:
    """What a signature dictionary inside a PDF says about itself"""
    field_name: str
    signer_name: Optional[str]
    sign_date: Optional[datetime]
    reason: Optional[str]
    contents: bytes

    @property
    def has_content(self) -> bool:
        return len(self.contents.rstrip(b"\x00")) > 0

    @property
    def envelope(self) -> bytes:
        """DER encoded CMS envelope without the zero padding of /Contents"""
        if not self.has_content:
            return b""
        return cms.ContentInfo.load(self.contents).dump()


class EmbeddedSignatures:
    """Lazy view over the signature dictionaries of a PDF.

    Nothing is parsed until iteration starts, and every new iteration
    re-reads the document from the start.
    """

    def __init__(self, pdf_bytes: bytes):
        self._pdf_bytes = pdf_bytes

    def __iter__(self) -> Iterator[EmbeddedSignatureInfo]:
        try:
            reader = PdfFileReader(io.BytesIO(self._pdf_bytes), strict=False)
            sig_fields = list(fields.enumerate_sig_fields(reader, filled_status=True))
        except Exception as e:
            raise VerificationError("Could not read signature dictionaries from PDF") from e

        for field_name, sig_value, _ in sig_fields:
            try:
                sig_obj = sig_value.get_object()
                info = EmbeddedSignatureInfo(
                    field_name=field_name,
                    signer_name=_optional_text(sig_obj, '/Name'),
                    sign_date=_optional_date(sig_obj),
                    reason=_optional_text(sig_obj, '/Reason'),
                    contents=_contents(sig_obj),
                )
            except Exception as e:
                raise VerificationError(f"Malformed signature dictionary in field {field_name}") from e
            yield info

    def __len__(self):
        return sum(1 for _ in self)


def _optional_text(sig_obj, key: str) -> Optional[str]:
    try:
        return str(sig_obj[key])
    except KeyError:
        return None


def _contents(sig_obj) -> bytes:
    # Zero padded up to the reserved size
    try:
        return bytes(sig_obj["/Contents"])
    except KeyError:
        return b""


def _optional_date(sig_obj) -> Optional[datetime]:
    try:
        return generic.parse_pdf_date(str(sig_obj['/M']))
    except KeyError:
        return None
    except Exception as e:
        logger.warning(f"Unparseable signing date in signature dictionary: {e}")
        return None


def _pdf_literal(text: str) -> bytes:
    """Encode text as a PDF literal string body for a WinAnsi font."""
    raw = text.encode('cp1252', errors='replace')
    return raw.replace(b'\\', b'\\\\').replace(b'(', b'\\(').replace(b')', b'\\)')


class PdfSigningEngine:
    """Applies visual and cryptographic signatures to PDF documents"""

    def __init__(self, context: CryptoContext):
        self.context = context

    def apply_visual_signature(self, pdf_bytes: bytes, image_bytes: bytes, placement: Placement) -> bytes:
        """
        Draw a signature image on a page.

        Args:
            pdf_bytes: Document to sign
            image_bytes: PNG/JPEG/... image of the handwritten signature
            placement: Target rectangle; an out-of-range page means the last page

        Returns:
            The document with one incremental update appended
        """
        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise SigningError("Signature image could not be decoded") from e
        if image.mode not in ('RGB', 'RGBA', 'L', 'LA'):
            image = image.convert('RGBA')

        try:
            writer = IncrementalPdfFileWriter(io.BytesIO(pdf_bytes), strict=False)
            page_ix = self._clamp_page(writer, placement.page)

            image_name = f"/SigImg{uuid.uuid4().hex[:12]}"
            resources = generic.DictionaryObject({
                pdf_name('/XObject'): generic.DictionaryObject({
                    pdf_name(image_name): pil_image(image, writer)
                })
            })
            # The image XObject maps to the unit square, scale and move it
            operators = b'q %g 0 0 %g %g %g cm %s Do Q' % (
                placement.width, placement.height, placement.x, placement.y,
                image_name.encode('ascii'),
            )
            stream_ref = writer.add_object(generic.StreamObject(stream_data=operators))
            writer.add_stream_to_page(page_ix, stream_ref, resources=resources)

            output = io.BytesIO()
            writer.write(output)
        except Exception as e:
            logger.error("Failed to apply visual signature", exc_info=True)
            raise SigningError("Failed to apply visual signature to PDF") from e

        logger.info(f"Visual signature drawn on page {page_ix}")
        return output.getvalue()

    def apply_cryptographic_signature(
        self,
        pdf_bytes: bytes,
        private_key,
        certificate_chain: List[x509.Certificate],
        kind: SignatureKind,
        signer_name: str,
        visual_rect: Optional[Placement] = None,
        field_name: Optional[str] = None,
    ) -> bytes:
        """
        Embed a detached PKCS#7 signature in the document.

        Args:
            pdf_bytes: Document to sign
            private_key: Signer's private key (pyca/cryptography object)
            certificate_chain: Signer certificate first, then its chain
            kind: ADVANCED or QUALIFIED, selects the /Reason label
            signer_name: Written to the signature dictionary /Name
            visual_rect: Where to stamp the "Signed by" box, if anywhere
            field_name: Signature field to create

        Returns:
            The signed document
        """
        if not kind.uses_certificate:
            raise UnsupportedSignatureKind(f"{kind.value} signatures carry no certificate")
        if private_key is None or not certificate_chain:
            raise SigningError("Certificate container holds no usable private key and certificate")

        try:
            signer = signers.SimpleSigner(
                signing_cert=_to_asn1_certificate(certificate_chain[0]),
                signing_key=asn1_keys.PrivateKeyInfo.load(
                    private_key.private_bytes(
                        encoding=serialization.Encoding.DER,
                        format=serialization.PrivateFormat.PKCS8,
                        encryption_algorithm=serialization.NoEncryption(),
                    )
                ),
                cert_registry=SimpleCertificateStore.from_certs(
                    [_to_asn1_certificate(c) for c in certificate_chain]
                ),
                signature_mechanism=self.context.signature_mechanism,
            )
        except Exception as e:
            logger.error("Could not derive content signer from key material", exc_info=True)
            raise SigningError("Could not read the private key or certificate chain") from e

        signature_meta = signers.PdfSignatureMetadata(
            field_name=field_name or f"Signature_{uuid.uuid4().hex[:12]}",
            name=signer_name,
            reason=self.context.reason_for(kind),
            md_algorithm=self.context.digest_algorithm,
            subfilter=fields.SigSeedSubFilter.ADOBE_PKCS7_DETACHED,
        )

        try:
            writer = IncrementalPdfFileWriter(io.BytesIO(pdf_bytes), strict=False)
            output = signers.sign_pdf(writer, signature_meta, signer=signer, output=io.BytesIO())
            signed_bytes = output.getvalue()
        except Exception as e:
            logger.error("Cryptographic signing of PDF failed", exc_info=True)
            raise SigningError("Failed to produce the cryptographic signature of the PDF") from e

        logger.info(f"{kind.value} signature embedded for {signer_name} in field {signature_meta.field_name}")

        if visual_rect is not None:
            # Separate revision appended after the signed byte range
            signed_bytes = self._stamp_signer_box(signed_bytes, signer_name, visual_rect)
        return signed_bytes

    def extract_embedded_signatures(self, pdf_bytes: bytes) -> EmbeddedSignatures:
        """Enumerate every filled signature dictionary present in the PDF."""
        return EmbeddedSignatures(pdf_bytes)

    def _stamp_signer_box(self, pdf_bytes: bytes, signer_name: str, rect: Placement) -> bytes:
        try:
            writer = IncrementalPdfFileWriter(io.BytesIO(pdf_bytes), strict=False)
            page_ix = self._clamp_page(writer, rect.page)

            font_name = f"/SigFont{uuid.uuid4().hex[:12]}"
            font_ref = writer.add_object(generic.DictionaryObject({
                pdf_name('/Type'): pdf_name('/Font'),
                pdf_name('/Subtype'): pdf_name('/Type1'),
                pdf_name('/BaseFont'): pdf_name('/Helvetica'),
                pdf_name('/Encoding'): pdf_name('/WinAnsiEncoding'),
            }))
            resources = generic.DictionaryObject({
                pdf_name('/Font'): generic.DictionaryObject({pdf_name(font_name): font_ref})
            })
            operators = b'q %g %g %g rg %g %g %g %g re f BT 0 0 0 rg %s %d Tf %g %g Td (%s) Tj ET Q' % (
                *STAMP_FILL_RGB,
                rect.x, rect.y, rect.width, rect.height,
                font_name.encode('ascii'), STAMP_FONT_SIZE,
                rect.x + 5, rect.y + rect.height - 15,
                _pdf_literal(f"Signed by: {signer_name}"),
            )
            stream_ref = writer.add_object(generic.StreamObject(stream_data=operators))
            writer.add_stream_to_page(page_ix, stream_ref, resources=resources)

            output = io.BytesIO()
            writer.write(output)
            return output.getvalue()
        except Exception as e:
            logger.error("Failed to stamp signature box", exc_info=True)
            raise SigningError("Failed to stamp the visual signature box") from e

    @staticmethod
    def _clamp_page(writer: IncrementalPdfFileWriter, page: int) -> int:
        page_count = int(writer.root['/Pages']['/Count'])
        if page_count == 0:
            raise SigningError("PDF document has no pages")
        if page >= page_count:
            logger.debug(f"Page {page} out of range, using last page {page_count - 1}")
            return page_count - 1
        return page


def _to_asn1_certificate(certificate: x509.Certificate) -> asn1_x509.Certificate:
    return asn1_x509.Certificate.load(certificate.public_bytes(serialization.Encoding.DER))
