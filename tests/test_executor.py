"""
Tests for the RebalanceExecutor: atomic verify-then-rebalance.
"""
import pytest

from protocol.errors import (
    EnforcedPause,
    ExecutionFailed,
    InvalidActionData,
    InvalidTickRange,
    MalformedPayload,
    UnauthorizedRelayer,
    VaultInactive,
)
from protocol.events import ProtocolFeeCollected, RebalanceExecuted, Rebalanced
from protocol.models import RebalancePayload
from vault.chain import LOG_GAS, TX_BASE_GAS, TxStatus

from tests.conftest import FEE_RECIPIENT, OUTSIDER, OWNER, SIGNER, USER


def test_execute_rebalance(chain, ledger, executor, funded_vault, sign_rebalance, token_a):
    """Test a valid payload applies the range, charges fees and reports gas."""
    signed = sign_rebalance(funded_vault, tick_lower=-600, tick_upper=600)

    executor.execute_rebalance(OUTSIDER, funded_vault, signed.payload, signed.signature)

    strategy = ledger.get_vault_strategy(funded_vault)
    assert (strategy.tick_lower, strategy.tick_upper) == (-600, 600)
    assert token_a.balance_of(FEE_RECIPIENT) > 0

    executed = chain.events(RebalanceExecuted)
    assert len(executed) == 1
    event = executed[0]
    assert event.vault_id == funded_vault
    assert event.signer == SIGNER
    assert event.nonce == 0
    assert event.gas_used > 0

    receipt = chain.receipts[event.tx_hash]
    assert receipt.status == TxStatus.SUCCESS
    assert receipt.gas_used == TX_BASE_GAS + event.gas_used + LOG_GAS

    # Every event of the execution shares one transaction
    assert chain.events(Rebalanced)[-1].tx_hash == event.tx_hash
    assert {ev.tx_hash for ev in chain.events(ProtocolFeeCollected)} == {event.tx_hash}


def test_accepts_wire_payload(ledger, executor, funded_vault, sign_rebalance, verifier):
    """Test the camelCase JSON form is accepted as submitted by a relayer."""
    signed = sign_rebalance(funded_vault)
    executor.execute_rebalance(OWNER, funded_vault, signed.payload.to_wire(), signed.signature)
    assert verifier.get_nonce(SIGNER) == 1


def test_malformed_wire_payload(executor, funded_vault, verifier):
    with pytest.raises(MalformedPayload):
        executor.execute_rebalance(OWNER, funded_vault, {"vaultId": funded_vault}, "0x00")
    with pytest.raises(MalformedPayload):
        executor.execute_rebalance(
            OWNER,
            funded_vault,
            {"vaultId": funded_vault, "nonce": -1, "actionData": "0x", "issuedAt": 0, "expiry": 0},
            "0x00",
        )


def test_ledger_failure_rolls_back_nonce(chain, ledger, executor, verifier, funded_vault, sign_rebalance):
    """Test a rebalance rejected by the ledger leaves the nonce unconsumed."""
    ledger.set_vault_active(USER, funded_vault, False)
    signed = sign_rebalance(funded_vault)

    with pytest.raises(ExecutionFailed) as excinfo:
        executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)

    assert isinstance(excinfo.value.__cause__, VaultInactive)
    assert verifier.get_nonce(SIGNER) == 0
    assert chain.events(RebalanceExecuted) == []
    last = list(chain.receipts.values())[-1]
    assert last.status == TxStatus.REVERTED
    assert last.error.startswith("ExecutionFailed")

    # Same payload goes through once the vault is re-enabled
    ledger.set_vault_active(USER, funded_vault, True)
    executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)
    assert verifier.get_nonce(SIGNER) == 1


def test_unexpected_ledger_error_wrapped(monkeypatch, chain, ledger, executor, verifier, funded_vault, sign_rebalance):
    """Test a non-vault exception from the ledger still surfaces as ExecutionFailed."""
    signed = sign_rebalance(funded_vault)

    def broken_rebalance(caller, vault_id, action_data):
        raise RuntimeError("pool unavailable")

    monkeypatch.setattr(ledger, "rebalance", broken_rebalance)
    with pytest.raises(ExecutionFailed, match="RuntimeError") as excinfo:
        executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert verifier.get_nonce(SIGNER) == 0
    assert chain.events(RebalanceExecuted) == []
    assert list(chain.receipts.values())[-1].status == TxStatus.REVERTED


@pytest.mark.parametrize(
    "kwargs,cause",
    [
        ({"tick_lower": 500, "tick_upper": 500}, InvalidTickRange),
        ({"tick_lower": 900, "tick_upper": -900}, InvalidTickRange),
    ],
)
def test_invalid_action_rolls_back(executor, verifier, funded_vault, sign_rebalance, kwargs, cause):
    signed = sign_rebalance(funded_vault, **kwargs)
    with pytest.raises(ExecutionFailed) as excinfo:
        executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)
    assert isinstance(excinfo.value.__cause__, cause)
    assert verifier.get_nonce(SIGNER) == 0


def test_undecodable_action_rolls_back(chain, executor, verifier, funded_vault, signer):
    """Test garbage action data is only caught at the ledger, after verification."""
    payload = RebalancePayload(
        vault_id=funded_vault,
        nonce=0,
        action_data=b"\xde\xad\xbe\xef",
        issued_at=chain.now,
        expiry=chain.now + 600,
    )
    signed = signer.sign(payload)

    with pytest.raises(ExecutionFailed) as excinfo:
        executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)
    assert isinstance(excinfo.value.__cause__, InvalidActionData)
    assert verifier.get_nonce(SIGNER) == 0


def test_paused_ledger_rolls_back(ledger, executor, verifier, funded_vault, sign_rebalance):
    ledger.pause(OWNER)
    signed = sign_rebalance(funded_vault)
    with pytest.raises(ExecutionFailed) as excinfo:
        executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)
    assert isinstance(excinfo.value.__cause__, EnforcedPause)
    assert verifier.get_nonce(SIGNER) == 0


def test_executor_must_be_authorized_relayer(registry, executor, verifier, funded_vault, sign_rebalance):
    """Test revoking the executor's relayer status stops all execution."""
    registry.set_relayer_authorization(OWNER, executor.address, False)
    signed = sign_rebalance(funded_vault)
    with pytest.raises(ExecutionFailed) as excinfo:
        executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)
    assert isinstance(excinfo.value.__cause__, UnauthorizedRelayer)
    assert verifier.get_nonce(SIGNER) == 0


def test_sequential_nonces(chain, ledger, executor, verifier, funded_vault, sign_rebalance):
    for nonce in range(3):
        chain.advance_time(60)
        signed = sign_rebalance(funded_vault, nonce=nonce, tick_lower=-100 * (nonce + 1))
        executor.execute_rebalance(OWNER, funded_vault, signed.payload, signed.signature)

    assert verifier.get_nonce(SIGNER) == 3
    assert ledger.get_vault_strategy(funded_vault).tick_lower == -300
    assert [ev.nonce for ev in chain.events(RebalanceExecuted)] == [0, 1, 2]
