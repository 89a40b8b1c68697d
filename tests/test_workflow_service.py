"""
Tests for signer slots, token redemption and document status
"""

from datetime import timedelta

import pytest

from signflow.core.errors import (
    DocumentNotFound,
    InvalidToken,
    InvalidWorkflowDefinition,
    WorkflowExpired,
    WorkflowNotPending,
)
from signflow.models.document import SignatureKind, SignatureModel, SignatureStatus, Placement
from signflow.schemas.workflow import WorkflowSignerDto


def signer(name, order, kind="SIMPLE"):
    return WorkflowSignerDto(
        name=name, email=f"{name.lower()}@example.com", sign_order=order, required_kind=kind
    )


@pytest.fixture
def workflows(container):
    return container.workflows


class TestCreateWorkflow:
    """Defining the signers of a document"""

    async def test_creates_pending_slots(self, workflows, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)

        assert [s.sign_order for s in slots] == [1, 2]
        assert all(s.status == SignatureStatus.PENDING for s in slots)
        assert all(s.document_id == document.document_id for s in slots)
        assert slots[1].required_kind == SignatureKind.ADVANCED

    async def test_tokens_are_unique_and_url_safe(self, workflows, document):
        slots = await workflows.create_workflow(
            document.document_id, [signer(f"Signer{i}", 1) for i in range(10)]
        )

        tokens = [s.token for s in slots]
        assert len(set(tokens)) == 10
        assert all(len(t) >= 40 and "/" not in t and "+" not in t for t in tokens)

    async def test_only_first_order_is_notified(self, workflows, container, sink, document):
        slots = await workflows.create_workflow(
            document.document_id, [signer("Alice", 1), signer("Carol", 1), signer("Bob", 2)]
        )
        await container.dispatcher.drain()

        assert sorted(sink.sent) == sorted([
            ("alice@example.com", slots[0].token),
            ("carol@example.com", slots[1].token),
        ])
        assert slots[0].notified_at is not None
        assert slots[2].notified_at is None

    async def test_expiration_days(self, workflows, store, clock, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers, expiration_days=3)

        expected = clock() + timedelta(days=3)
        assert all(s.expires_at == expected for s in slots)
        assert (await store.get_document(document.document_id)).expires_at == expected

    async def test_empty_signer_list(self, workflows, document):
        with pytest.raises(InvalidWorkflowDefinition):
            await workflows.create_workflow(document.document_id, [])

    async def test_unknown_document(self, workflows, two_signers):
        with pytest.raises(DocumentNotFound):
            await workflows.create_workflow("doc_missing", two_signers)

    async def test_invalid_expiration(self, workflows, document, two_signers):
        with pytest.raises(InvalidWorkflowDefinition):
            await workflows.create_workflow(document.document_id, two_signers, expiration_days=0)


class TestRedeem:
    """Token redemption contract"""

    async def test_redeem_pending_slot(self, workflows, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)

        slot = await workflows.redeem(slots[0].token, document.document_id)

        assert slot.workflow_id == slots[0].workflow_id
        assert slot.is_pending

    async def test_unknown_token(self, workflows):
        with pytest.raises(InvalidToken):
            await workflows.redeem("no-such-token")

    async def test_token_of_another_document(self, workflows, container, document, pdf_bytes, two_signers):
        other = await container.documents.upload("other.pdf", pdf_bytes)
        slots = await workflows.create_workflow(document.document_id, two_signers)

        with pytest.raises(InvalidToken):
            await workflows.redeem(slots[0].token, other.document_id)

    async def test_not_pending_is_refused_without_mutation(self, workflows, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)
        rejected = await workflows.reject(slots[0].token, "Wrong amount")

        with pytest.raises(WorkflowNotPending):
            await workflows.redeem(slots[0].token)

        after = await workflows.get_workflow_by_token(slots[0].token)
        assert after.status == SignatureStatus.REJECTED
        assert after.rejected_at == rejected.rejected_at
        assert after.rejection_reason == "Wrong amount"

    async def test_expired_slot_is_marked_once(self, workflows, store, clock, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers, expiration_days=1)
        clock.advance(days=2)

        with pytest.raises(WorkflowExpired):
            await workflows.redeem(slots[0].token)

        expired = await workflows.get_workflow_by_token(slots[0].token)
        assert expired.status == SignatureStatus.EXPIRED

        # Already terminal, a second attempt is not an expiry anymore
        with pytest.raises(WorkflowNotPending):
            await workflows.redeem(slots[0].token)

        # The document does not follow an expired slot
        assert (await store.get_document(document.document_id)).status == SignatureStatus.PENDING


class TestReject:
    """Explicit rejection by a signer"""

    async def test_reject_short_circuits_document(self, workflows, store, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)

        rejected = await workflows.reject(slots[1].token, "Not my contract")

        assert rejected.status == SignatureStatus.REJECTED
        assert rejected.rejection_reason == "Not my contract"
        assert rejected.rejected_at is not None
        assert (await store.get_document(document.document_id)).status == SignatureStatus.REJECTED

    async def test_reject_twice(self, workflows, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)
        await workflows.reject(slots[0].token)

        with pytest.raises(WorkflowNotPending):
            await workflows.reject(slots[0].token)

    async def test_reject_unknown_token(self, workflows):
        with pytest.raises(InvalidToken):
            await workflows.reject("unknown")


class TestMarkSigned:
    """Completion of a slot and notification of the next order"""

    async def test_next_order_notified_exactly_once(self, workflows, container, sink, document):
        slots = await workflows.create_workflow(
            document.document_id,
            [signer("Alice", 1), signer("Bob", 2), signer("Carol", 2), signer("Dave", 3)],
        )
        await container.dispatcher.drain()
        sink.sent.clear()

        slot = await workflows.redeem(slots[0].token)
        await workflows.mark_signed(slot, "sig_test")
        await container.dispatcher.drain()

        assert sorted(email for email, _ in sink.sent) == ["bob@example.com", "carol@example.com"]
        stored = await workflows.get_workflow_by_token(slots[0].token)
        assert stored.status == SignatureStatus.SIGNED
        assert stored.signature_id == "sig_test"
        assert stored.signed_at is not None

    async def test_signed_slot_cannot_transition_again(self, workflows, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)
        slot = await workflows.redeem(slots[0].token)
        await workflows.mark_signed(slot, "sig_test")

        with pytest.raises(WorkflowNotPending):
            await workflows.reject(slots[0].token)


class TestDocumentStatus:
    """Aggregate status derived from slots and signatures"""

    async def test_no_slots_no_signature(self, workflows, document):
        updated = await workflows.recompute_document_status(document)
        assert updated.status == SignatureStatus.PENDING

    async def test_no_slots_one_signature(self, workflows, store, document):
        await store.save_signature(SignatureModel(
            document_id=document.document_id,
            signer_name="Alice Martin",
            signer_email="alice@example.com",
            kind=SignatureKind.SIMPLE,
            placement=Placement(x=1, y=1, width=1, height=1),
        ))

        updated = await workflows.recompute_document_status(document)

        assert updated.status == SignatureStatus.SIGNED

    async def test_signed_only_when_every_slot_signed(self, workflows, store, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)

        await workflows.mark_signed(await workflows.redeem(slots[0].token), "sig_1")
        current = await store.get_document(document.document_id)
        assert (await workflows.recompute_document_status(current)).status == SignatureStatus.PENDING

        await workflows.mark_signed(await workflows.redeem(slots[1].token), "sig_2")
        assert (await workflows.recompute_document_status(current)).status == SignatureStatus.SIGNED


class TestQueries:
    """Read-only lookups"""

    async def test_document_workflows_ordered(self, workflows, document):
        await workflows.create_workflow(
            document.document_id, [signer("Carol", 3), signer("Alice", 1), signer("Bob", 2)]
        )

        slots = await workflows.get_document_workflows(document.document_id)

        assert [s.signer_name for s in slots] == ["Alice", "Bob", "Carol"]

    async def test_pending_for_signer(self, workflows, document, two_signers):
        slots = await workflows.create_workflow(document.document_id, two_signers)
        await workflows.reject(slots[0].token)

        assert await workflows.get_pending_for_signer("alice@example.com") == []
        pending = await workflows.get_pending_for_signer("bob@example.com")
        assert [s.workflow_id for s in pending] == [slots[1].workflow_id]

    async def test_list_expired_is_read_only(self, workflows, clock, document, two_signers):
        await workflows.create_workflow(document.document_id, two_signers, expiration_days=1)

        assert await workflows.list_expired_workflows() == []

        later = clock() + timedelta(days=2)
        expired = await workflows.list_expired_workflows(later)
        assert len(expired) == 2
        assert all(s.status == SignatureStatus.PENDING for s in await workflows.get_document_workflows(document.document_id))

    async def test_unknown_token_lookup(self, workflows):
        with pytest.raises(InvalidToken):
            await workflows.get_workflow_by_token("nope")
