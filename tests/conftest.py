"""
Shared fixtures: a freshly deployed protocol on a LocalChain with two
mock tokens, a funded depositor and an authorized optimizer signer.
"""
import pytest
from eth_account import Account

from optimizer.signer import PayloadSigner
from protocol.models import RebalanceAction, StrategyParams
from vault.chain import LocalChain
from vault.deployment import deploy
from vault.tokens import MockERC20

CHAIN_ID = 5611
GENESIS = 1_700_000_000

OWNER_KEY = "0x" + "11" * 32
USER_KEY = "0x" + "22" * 32
SIGNER_KEY = "0x" + "33" * 32
RELAYER_KEY = "0x" + "44" * 32
FEE_RECIPIENT_KEY = "0x" + "55" * 32
OUTSIDER_KEY = "0x" + "66" * 32

OWNER = Account.from_key(OWNER_KEY).address
USER = Account.from_key(USER_KEY).address
SIGNER = Account.from_key(SIGNER_KEY).address
RELAYER = Account.from_key(RELAYER_KEY).address
FEE_RECIPIENT = Account.from_key(FEE_RECIPIENT_KEY).address
OUTSIDER = Account.from_key(OUTSIDER_KEY).address

ONE_ETHER = 10 ** 18
USER_FUNDS_A = 1_000 * ONE_ETHER
USER_FUNDS_B = 1_000_000 * 10 ** 6

FULL_RANGE = StrategyParams(tick_lower=-887220, tick_upper=887220)


@pytest.fixture
def chain():
    return LocalChain(chain_id=CHAIN_ID, timestamp=GENESIS)


@pytest.fixture
def deployment(chain):
    return deploy(chain, owner=OWNER, fee_recipient=FEE_RECIPIENT, protocol_fee_bps=50)


@pytest.fixture
def registry(deployment):
    return deployment.registry


@pytest.fixture
def ledger(deployment):
    return deployment.ledger


@pytest.fixture
def verifier(deployment):
    return deployment.verifier


@pytest.fixture
def executor(deployment):
    return deployment.executor


@pytest.fixture
def token_a(chain, ledger):
    token = MockERC20(chain, "Wrapped BNB", "WBNB", 18)
    token.mint(OWNER, USER, USER_FUNDS_A)
    token.approve(USER, ledger.address, USER_FUNDS_A)
    return token


@pytest.fixture
def token_b(chain, ledger):
    token = MockERC20(chain, "Tether USD", "USDT", 6)
    token.mint(OWNER, USER, USER_FUNDS_B)
    token.approve(USER, ledger.address, USER_FUNDS_B)
    return token


@pytest.fixture
def vault_id(ledger, token_a, token_b):
    return ledger.create_vault(USER, token_a.address, token_b.address, FULL_RANGE)


@pytest.fixture
def funded_vault(ledger, vault_id):
    """Vault holding Scenario A's first deposit (1 ether A, 600 units B)."""
    ledger.deposit(USER, vault_id, ONE_ETHER, 600 * 10 ** 6)
    return vault_id


@pytest.fixture
def signer(registry, verifier):
    registry.set_signer_authorization(OWNER, SIGNER, True)
    return PayloadSigner(SIGNER_KEY, verifier.domain)


@pytest.fixture
def sign_rebalance(chain, signer):
    """
    Build and sign a range payload. Defaults: next nonce, issued now,
    valid for ten minutes.
    """

    def _sign(
        vault_id,
        tick_lower=-900000,
        tick_upper=900000,
        reallocate_pct=30,
        nonce=None,
        issued_at=None,
        expiry=None,
        payload_signer=None,
    ):
        payload_signer = payload_signer or signer
        issued_at = chain.now if issued_at is None else issued_at
        payload = payload_signer.build_payload(
            vault_id,
            nonce=0 if nonce is None else nonce,
            action=RebalanceAction(
                tick_lower=tick_lower, tick_upper=tick_upper, reallocate_pct=reallocate_pct
            ),
            issued_at=issued_at,
        )
        if expiry is not None:
            payload = payload.model_copy(update={"expiry": expiry})
        return payload_signer.sign(payload)

    return _sign
