# tests/test_stake_flow.py
"""End to end: args -> envelope -> signature -> broadcast, against a fake engine."""
from decimal import Decimal

import pytest

from chain_bridge.api.governance import GovernanceProposalArgs, GovernanceService
from chain_bridge.api.stake import (
    AcceptSlotArgs,
    CancelSlotArgs,
    DeclareCandidacyArgs,
    EditCandidacyArgs,
    ProposeSlotArgs,
    StakeService,
    WithdrawCandidacyArgs,
)
from chain_bridge.errors import ChainNotReady, ValidationError
from chain_bridge.runtime import stake_tx
from chain_bridge.runtime.address import parse_address
from chain_bridge.runtime.broadcast import CommitResult, TxResult
from chain_bridge.runtime.envelope import Envelope, open_envelope

from conftest import CHAIN_ID, make_backend


class CapturingBroadcaster:
    def __init__(self):
        self.envelopes = []
        self.result = CommitResult(height=77, hash="C0FFEE", deliver_tx=TxResult(log="ok"))

    def broadcast(self, envelope):
        self.envelopes.append(envelope)
        return self.result


def test_propose_slot_end_to_end(backend, engine, signer):
    engine.set_sequence(signer, 3)
    fake = CapturingBroadcaster()
    backend.broadcaster = fake

    args = ProposeSlotArgs(**{"from": signer, "amount": 1000, "proposedRoi": 12})
    result = StakeService(backend).propose_slot(args)

    assert result is fake.result
    opened = open_envelope(fake.envelopes[0], chain_id=CHAIN_ID)
    assert opened.nonce.sequence == 4
    assert opened.chain.chain_id == CHAIN_ID
    assert opened.sig.slots[0].signature
    assert opened.inner == stake_tx.TxProposeSlot(parse_address(signer), 1000, 12)


def test_broadcast_reaches_engine_as_wire_bytes(backend, engine, signer):
    args = AcceptSlotArgs(**{"from": signer, "amount": 5, "slotId": "S-9"})
    result = StakeService(backend).accept_slot(args)
    assert result.height == 11
    assert result.ok
    sent = Envelope.from_bytes(engine.broadcasts[0])
    opened = open_envelope(sent, chain_id=CHAIN_ID)
    assert opened.inner == stake_tx.TxAcceptSlot(5, "S-9")
    assert opened.nonce.sequence == 1


def test_withdraw_candidacy_targets_signer(backend, signer):
    fake = CapturingBroadcaster()
    backend.broadcaster = fake
    StakeService(backend).withdraw_candidacy(WithdrawCandidacyArgs(**{"from": signer, "sequence": 2}))
    opened = open_envelope(fake.envelopes[0])
    assert opened.inner.validator_address == parse_address(signer)
    assert opened.nonce.sequence == 2


def test_declare_and_cancel(backend, signer):
    fake = CapturingBroadcaster()
    backend.broadcaster = fake
    svc = StakeService(backend)
    svc.declare_candidacy(DeclareCandidacyArgs(**{"from": signer, "pubKey": "0x" + "01" * 32}))
    svc.cancel_slot(CancelSlotArgs(**{"from": signer, "slotId": "S1"}))
    kinds = [type(open_envelope(e).inner) for e in fake.envelopes]
    assert kinds == [stake_tx.TxDeclareCandidacy, stake_tx.TxCancelSlot]


def test_edit_candidacy_requires_new_address(backend, signer):
    with pytest.raises(ValidationError) as ei:
        StakeService(backend).edit_candidacy(EditCandidacyArgs(**{"from": signer}))
    assert "must provide new address" in str(ei.value)


def test_sequence_lookup(backend, engine, signer):
    engine.set_sequence(signer, 12)
    assert StakeService(backend).get_sequence(signer) == 12


def test_write_before_chain_known(engine, keystore, store, signer):
    backend = make_backend(engine, keystore, store, chain_id=None)
    with pytest.raises(ChainNotReady):
        StakeService(backend).accept_slot(AcceptSlotArgs(**{"from": signer, "amount": 1, "slotId": "S"}))
    assert engine.calls == []


def test_governance_proposal_signed_by_proposer(backend, keystore, signer):
    fake = CapturingBroadcaster()
    backend.broadcaster = fake
    other = "0x" + keystore.new_account().address.hex()
    args = GovernanceProposalArgs(
        **{
            "proposer": signer,
            "from": other,
            "to": "0x" + "ee" * 20,
            "amount": "1000000000000000000000",
            "reason": "grant",
            "sequence": 5,
        }
    )
    result = GovernanceService(backend).propose(args)
    assert result is fake.result
    opened = open_envelope(fake.envelopes[0], chain_id=CHAIN_ID)
    assert opened.sig.slots[0].signer == parse_address(signer)
    assert opened.nonce.sequence == 5
    assert opened.inner.to_dict()["amount"] == "1000000000000000000000"


def test_governance_amount_must_be_integral(backend, signer):
    args = GovernanceProposalArgs(
        **{"proposer": signer, "from": signer, "to": signer, "amount": "1.5"}
    )
    with pytest.raises(ValidationError):
        GovernanceService(backend).propose(args)


@pytest.mark.parametrize("amount", ["1e3", "1E+3", "1e20000000", "0x10", " ", "1" + "0" * 78])
def test_governance_amount_must_be_plain_bounded_digits(backend, signer, amount):
    args = GovernanceProposalArgs(**{"proposer": signer, "from": signer, "to": signer, "amount": amount})
    with pytest.raises(ValidationError):
        GovernanceService(backend).propose(args)
    assert backend.client.broadcasts == []


def test_governance_amount_at_uint256_width_is_accepted(backend, signer):
    fake = CapturingBroadcaster()
    backend.broadcaster = fake
    amount = "9" * 78
    args = GovernanceProposalArgs(**{"proposer": signer, "from": signer, "to": signer, "amount": amount})
    GovernanceService(backend).propose(args)
    assert open_envelope(fake.envelopes[0]).inner.to_dict()["amount"] == amount


def test_exponent_decimal_fails_validation_without_expanding():
    tx = stake_tx.TxGovernancePropose(
        b"\x01" * 20, b"\x02" * 20, b"\x03" * 20, Decimal("1E+20000000"), ""
    )
    with pytest.raises(ValidationError):
        tx.validate_basic()
    with pytest.raises(ValidationError):
        stake_tx.parse_amount(Decimal("1E+20000000"))
