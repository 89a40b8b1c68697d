"""
Tests for name-based signature verification
"""

import pytest

from signflow.core.errors import DocumentNotFound
from signflow.services.verification_service import (
    ALL_VALID_MESSAGE,
    NOT_SIGNED_MESSAGE,
    SIGNATURE_NOT_FOUND,
    SOME_INVALID_MESSAGE,
)


@pytest.fixture
def verification(container):
    return container.verification


class TestVerify:
    """Correlating Signature records with embedded signatures"""

    async def test_unsigned_document(self, verification, document):
        report = await verification.verify(document.document_id)

        assert report.is_valid is False
        assert report.message == NOT_SIGNED_MESSAGE
        assert report.signatures == []

    async def test_unknown_document(self, verification):
        with pytest.raises(DocumentNotFound):
            await verification.verify("doc_missing")

    async def test_certificate_signature_is_valid(self, verification, container, document, advanced_request):
        await container.signing.sign(advanced_request())

        report = await verification.verify(document.document_id)

        assert report.is_valid is True
        assert report.message == ALL_VALID_MESSAGE
        [result] = report.signatures
        assert result.signer_name == "Alice Martin"
        assert result.is_valid is True
        assert result.certificate_valid is True
        assert result.certificate_serial is not None
        assert result.validation_errors == []

    async def test_simple_signature_has_no_embedded_counterpart(self, verification, container, document, simple_request):
        await container.signing.sign(simple_request())

        report = await verification.verify(document.document_id)

        assert report.is_valid is False
        assert report.message == SOME_INVALID_MESSAGE
        [result] = report.signatures
        assert result.certificate_valid is None
        assert result.validation_errors == [SIGNATURE_NOT_FOUND]

    async def test_name_match_is_exact(self, verification, container, store, document, advanced_request):
        await container.signing.sign(advanced_request(signer_name="Alice Martin"))
        # A record whose name differs only by case is not matched
        await container.signing.sign(advanced_request(signer_name="alice martin"))

        report = await verification.verify(document.document_id)

        # Only the latest signed bytes are checked, they carry "alice martin"
        by_name = {r.signer_name: r.is_valid for r in report.signatures}
        assert by_name == {"Alice Martin": False, "alice martin": True}
        assert report.is_valid is False

    async def test_signed_bytes_without_records(self, verification, store, blobs, document, pdf_bytes):
        document.signed_handle = await blobs.put(pdf_bytes)
        await store.save_document(document)

        report = await verification.verify(document.document_id)

        assert report.is_valid is True
        assert report.message == ALL_VALID_MESSAGE
        assert report.signatures == []
