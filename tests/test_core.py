"""
Tests for configuration, logging, errors and document locks
"""

import asyncio
import json
import logging

import pytest
from pydantic import ValidationError

from signflow.core.config import Settings
from signflow.core.errors import DocumentNotFound, InvalidDocument, SignflowError, WorkflowExpired
from signflow.core.locks import DocumentLockRegistry
from signflow.core.logging_config import (
    GELFFormatter,
    clear_signing_context,
    get_signing_context,
    mask_token,
    set_signing_context,
)


class TestSettings:
    """Environment driven configuration"""

    def test_defaults(self):
        config = Settings()
        assert config.API_V1_STR == "/api/v1"
        assert config.SIGNING_DIGEST_ALGORITHM == "sha256"
        assert (config.VISUAL_DEFAULT_WIDTH, config.VISUAL_DEFAULT_HEIGHT) == (150, 50)
        assert (config.CERTIFICATE_DEFAULT_WIDTH, config.CERTIFICATE_DEFAULT_HEIGHT) == (200, 80)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MAX_DOCUMENT_SIZE_MB", "5")
        monkeypatch.setenv("SIGNING_DIGEST_ALGORITHM", "SHA512")

        config = Settings()

        assert config.MAX_DOCUMENT_SIZE_MB == 5
        assert config.SIGNING_DIGEST_ALGORITHM == "sha512"

    @pytest.mark.parametrize("field,value", [
        ("ENTITY_STORE", "redis"),
        ("BLOB_STORE", "s3"),
        ("SIGNING_DIGEST_ALGORITHM", "md5"),
    ])
    def test_rejected_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})


class TestErrors:
    """Typed failures"""

    def test_default_message_and_status(self):
        error = DocumentNotFound()
        assert error.message == "Document not found"
        assert error.status_code == 404
        assert isinstance(error, SignflowError)

    def test_custom_message(self):
        assert WorkflowExpired("Link expired yesterday").message == "Link expired yesterday"
        assert WorkflowExpired.status_code == 410

    def test_invalid_document_status_override(self):
        assert InvalidDocument().status_code == 400
        assert InvalidDocument("too big", status_code=413).status_code == 413
        assert InvalidDocument.status_code == 400


class TestLogging:
    """Signing context and GELF output"""

    def teardown_method(self):
        clear_signing_context()

    def test_mask_token(self):
        assert mask_token("abcdefghijklmnop") == "abcdef..."
        assert mask_token(None) is None

    def test_signing_context(self):
        set_signing_context(document_id="doc_42", signer_email="bob@example.com", workflow_token="abcdefghijkl")

        assert get_signing_context() == {
            "document_id": "doc_42",
            "signer_email": "bob@example.com",
            "workflow_token": "abcdef...",
        }

        clear_signing_context()
        assert set(get_signing_context().values()) == {None}

    def test_gelf_message_carries_context(self):
        set_signing_context(document_id="doc_42", workflow_token="abcdefghijkl")
        record = logging.LogRecord("signflow.test", logging.WARNING, __file__, 10, "slot %s expired", ("wf_1",), None)

        message = json.loads(GELFFormatter().format(record))

        assert message["short_message"] == "slot wf_1 expired"
        assert message["level"] == 4
        assert message["facility"] == "signflow"
        assert message["_document_id"] == "doc_42"
        assert message["_workflow_token"] == "abcdef..."
        assert "_signer_email" not in message


class TestDocumentLockRegistry:
    """Per-document mutual exclusion"""

    async def test_same_document_is_serialised(self):
        locks = DocumentLockRegistry()
        events = []

        async def critical(name):
            async with locks.hold("doc_1"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(critical("a"), critical("b"))

        assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    async def test_other_documents_do_not_wait(self):
        locks = DocumentLockRegistry()

        async with locks.hold("doc_1"):
            assert locks.is_locked("doc_1")
            async with locks.hold("doc_2"):
                assert locks.is_locked("doc_2")

        assert not locks.is_locked("doc_1")

    async def test_released_on_error(self):
        locks = DocumentLockRegistry()

        with pytest.raises(RuntimeError):
            async with locks.hold("doc_1"):
                raise RuntimeError("boom")

        assert not locks.is_locked("doc_1")
        assert locks._locks == {}
