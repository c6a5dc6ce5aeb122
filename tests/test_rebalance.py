"""
Tests for the ledger's privileged rebalance entry point and fee collection.
"""
import pytest
from eth_abi import encode as abi_encode
from eth_utils import keccak

from protocol.errors import (
    EnforcedPause,
    FeeTooHigh,
    InvalidActionData,
    InvalidTickRange,
    NegativeFee,
    UnauthorizedRelayer,
    VaultInactive,
    VaultNotFound,
)
from protocol.events import ProtocolFeeCollected, Rebalanced
from protocol.models import RebalanceAction
from vault.utils.web3 import to_hex

from tests.conftest import FEE_RECIPIENT, ONE_ETHER, OUTSIDER, OWNER, RELAYER, USER

WIDE = RebalanceAction(tick_lower=-900000, tick_upper=900000, reallocate_pct=30).encode()


@pytest.fixture
def relayer(registry):
    registry.set_relayer_authorization(OWNER, RELAYER, True)
    return RELAYER


def test_rebalance_applies_range_and_fee(chain, ledger, funded_vault, relayer, token_a, token_b):
    """Test an authorized relayer moves the range and pays the protocol fee."""
    chain.advance_time(120)

    ledger.rebalance(relayer, funded_vault, WIDE)

    strategy = ledger.get_vault_strategy(funded_vault)
    assert strategy.tick_lower == -900000
    assert strategy.tick_upper == 900000

    info = ledger.get_vault_info(funded_vault)
    assert info.last_rebalance == chain.now

    fee_a = ONE_ETHER * 50 // 10_000
    fee_b = 600 * 10 ** 6 * 50 // 10_000
    assert token_a.balance_of(FEE_RECIPIENT) == fee_a
    assert token_b.balance_of(FEE_RECIPIENT) == fee_b
    assert info.total_token_a == ONE_ETHER - fee_a
    assert info.total_token_b == 600 * 10 ** 6 - fee_b
    assert token_a.balance_of(ledger.address) == info.total_token_a

    fees = chain.events(ProtocolFeeCollected)
    assert [(ev.token, ev.amount) for ev in fees] == [
        (token_a.address, fee_a),
        (token_b.address, fee_b),
    ]
    assert all(ev.recipient == FEE_RECIPIENT for ev in fees)

    rebalanced = chain.events(Rebalanced)[-1]
    assert rebalanced.vault_id == funded_vault
    assert rebalanced.executor == relayer
    assert rebalanced.details_hash == to_hex(keccak(WIDE))


def test_reallocate_pct_is_not_applied(ledger, funded_vault, relayer):
    """Test reallocate_pct is carried on the wire but moves no balances."""
    ledger.rebalance(relayer, funded_vault, WIDE)
    with_pct = ledger.get_vault_info(funded_vault)

    ledger.rebalance(
        relayer,
        funded_vault,
        RebalanceAction(tick_lower=-900000, tick_upper=900000, reallocate_pct=0).encode(),
    )
    without_pct = ledger.get_vault_info(funded_vault)

    # Only the fee moved, identically in both rebalances.
    fee_a = with_pct.total_token_a * 50 // 10_000
    assert without_pct.total_token_a == with_pct.total_token_a - fee_a
    assert without_pct.total_shares == with_pct.total_shares


def test_owner_may_rebalance_directly(ledger, funded_vault):
    ledger.rebalance(OWNER, funded_vault, WIDE)
    assert ledger.get_vault_strategy(funded_vault).tick_lower == -900000


def test_unauthorized_caller_rejected(chain, ledger, funded_vault, token_a):
    """Test a valid action from a non-relayer fails and changes nothing."""
    before = ledger.get_vault_info(funded_vault)
    strategy = ledger.get_vault_strategy(funded_vault)

    for caller in (OUTSIDER, USER):
        with pytest.raises(UnauthorizedRelayer):
            ledger.rebalance(caller, funded_vault, WIDE)

    assert ledger.get_vault_info(funded_vault) == before
    assert ledger.get_vault_strategy(funded_vault) == strategy
    assert token_a.balance_of(FEE_RECIPIENT) == 0
    assert chain.events(Rebalanced) == []


def test_revoked_relayer_rejected(registry, ledger, funded_vault, relayer):
    registry.set_relayer_authorization(OWNER, relayer, False)
    with pytest.raises(UnauthorizedRelayer):
        ledger.rebalance(relayer, funded_vault, WIDE)


def test_rebalance_inverted_ticks(ledger, funded_vault, relayer):
    data = RebalanceAction(tick_lower=10, tick_upper=-10).encode()
    with pytest.raises(InvalidTickRange):
        ledger.rebalance(relayer, funded_vault, data)


def test_rebalance_undecodable_action(ledger, funded_vault, relayer):
    """Test truncated and out-of-range action data are both rejected."""
    with pytest.raises(InvalidActionData):
        ledger.rebalance(relayer, funded_vault, b"\x01\x02")

    # Words that do not sign-extend into an int24
    oversized = abi_encode(["int256", "int256", "uint256"], [2 ** 30, 2 ** 31, 0])
    with pytest.raises(InvalidActionData):
        ledger.rebalance(relayer, funded_vault, oversized)


def test_rebalance_state_checks(ledger, funded_vault, relayer):
    with pytest.raises(VaultNotFound):
        ledger.rebalance(relayer, 99, WIDE)

    ledger.pause(OWNER)
    with pytest.raises(EnforcedPause):
        ledger.rebalance(relayer, funded_vault, WIDE)
    ledger.unpause(OWNER)

    ledger.set_vault_active(USER, funded_vault, False)
    with pytest.raises(VaultInactive):
        ledger.rebalance(relayer, funded_vault, WIDE)


def test_fee_rounds_down(chain, registry, ledger, vault_id, relayer, token_a, token_b):
    """Test fees are floor(balance * bps / 10000) per token."""
    ledger.deposit(USER, vault_id, 1_000_003, 1_999_999)

    ledger.rebalance(relayer, vault_id, WIDE)

    assert token_a.balance_of(FEE_RECIPIENT) == 1_000_003 * 50 // 10_000 == 5_000
    assert token_b.balance_of(FEE_RECIPIENT) == 1_999_999 * 50 // 10_000 == 9_999


@pytest.mark.parametrize("fee_bps", [0, 1, 333, 1000])
def test_fee_never_exceeds_bound(registry, ledger, funded_vault, relayer, token_a, token_b, fee_bps):
    """Test any accepted fee deducts at most fee_bps / 10000 of each balance."""
    registry.set_protocol_fee(OWNER, fee_bps)
    before = ledger.get_vault_info(funded_vault)

    ledger.rebalance(relayer, funded_vault, WIDE)

    after = ledger.get_vault_info(funded_vault)
    taken_a = before.total_token_a - after.total_token_a
    taken_b = before.total_token_b - after.total_token_b
    assert taken_a * 10_000 <= before.total_token_a * fee_bps
    assert taken_b * 10_000 <= before.total_token_b * fee_bps
    assert token_a.balance_of(FEE_RECIPIENT) == taken_a


def test_zero_fee_emits_no_fee_events(chain, registry, ledger, funded_vault, relayer):
    registry.set_protocol_fee(OWNER, 0)
    ledger.rebalance(relayer, funded_vault, WIDE)
    assert chain.events(ProtocolFeeCollected) == []
    assert len(chain.events(Rebalanced)) == 1


@pytest.mark.parametrize("fee_bps", [1001, 5000])
def test_fee_above_ceiling_rejected(registry, fee_bps):
    with pytest.raises(FeeTooHigh):
        registry.set_protocol_fee(OWNER, fee_bps)
    assert registry.protocol_fee_bps == 50


def test_negative_fee_rejected(registry):
    with pytest.raises(NegativeFee, match="negative"):
        registry.set_protocol_fee(OWNER, -1)
    assert registry.protocol_fee_bps == 50
