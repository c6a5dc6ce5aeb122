"""
Main entry point for the vault orchestrator demo.

Deploys the contracts on a local chain, creates and funds a vault, lets the
optimizer recommend and sign a rebalance, and pushes it through the relayer.

Usage:
    python -m vault.main --db-url sqlite://:memory:
"""
import argparse
import asyncio
import logging
import sys
from typing import List

from eth_account import Account

from optimizer import HeuristicOptimizer, PayloadSigner, PriceSample
from protocol.models import StrategyParams
from vault.chain import LocalChain
from vault.deployment import deploy
from vault.models.job import JobStatus, close_db, init_db
from vault.services.relayer import RelayerService
from vault.tokens import MockERC20
from vault.utils.env import CHAIN_ID, OPTIMIZER_PRIVATE_KEY

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def get_config() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Vault orchestrator demo")
    parser.add_argument("--chain-id", type=int, default=CHAIN_ID, help="Chain id of the signing domain")
    parser.add_argument("--db-url", type=str, default="sqlite://:memory:", help="Relayer job store URL")
    parser.add_argument("--optimizer-key", type=str, default=OPTIMIZER_PRIVATE_KEY, help="Optimizer signing key")
    parser.add_argument("--fee-bps", type=int, default=50, help="Protocol fee in basis points")
    return parser.parse_args()


def trending_prices(start: float, step: float, now: int, count: int = 25) -> List[PriceSample]:
    """Hourly samples moving by `step` each hour, oldest first."""
    return [
        PriceSample(price=start + step * i, timestamp=now - (count - 1 - i) * 3600, volume=250_000.0)
        for i in range(count)
    ]


async def run(config: argparse.Namespace) -> int:
    chain = LocalChain(chain_id=config.chain_id)
    owner = Account.create().address
    depositor = Account.create().address
    relayer = Account.create().address
    optimizer_account = (
        Account.from_key(config.optimizer_key) if config.optimizer_key else Account.create()
    )

    deployment = deploy(chain, owner=owner, protocol_fee_bps=config.fee_bps)
    registry, ledger = deployment.registry, deployment.ledger
    registry.set_signer_authorization(owner, optimizer_account.address, True)

    wbnb = MockERC20(chain, "Wrapped BNB", "WBNB", 18)
    usdt = MockERC20(chain, "Tether USD", "USDT", 6)
    amount_a, amount_b = 10 * 10 ** 18, 6_000 * 10 ** 6
    wbnb.mint(owner, depositor, amount_a)
    usdt.mint(owner, depositor, amount_b)
    wbnb.approve(depositor, ledger.address, amount_a)
    usdt.approve(depositor, ledger.address, amount_b)

    vault_id = ledger.create_vault(
        depositor,
        wbnb.address,
        usdt.address,
        StrategyParams(tick_lower=-887220, tick_upper=887220, rebalance_threshold=500),
    )
    shares = ledger.deposit(depositor, vault_id, amount_a, amount_b)
    logger.info(f"Vault {vault_id}: minted {shares} shares")

    chain.advance_time(2 * 3600)
    prices = trending_prices(600.0, 1.5, chain.now)
    optimizer = HeuristicOptimizer(market_data=lambda token: prices)
    recommendation = optimizer.get_recommendation(
        ledger.get_vault_info(vault_id), ledger.get_vault_strategy(vault_id), chain.now
    )
    logger.info(f"Recommendation: {recommendation.model_dump_json()}")

    signer = PayloadSigner(optimizer_account.key, deployment.verifier.domain)
    signed = signer.sign_recommendation(
        recommendation,
        nonce=deployment.verifier.get_nonce(signer.address),
        issued_at=chain.now,
    )
    if signed is None:
        logger.info("Optimizer advises no rebalance; nothing to relay")
        return 0

    await init_db(config.db_url)
    try:
        service = RelayerService(chain, deployment.executor, relayer)
        job_id = await service.submit_signed(signed)
        status = await service.process_job(job_id)
        logger.info(f"Job {job_id}: {status.model_dump_json()}")
    finally:
        await close_db()

    strategy = ledger.get_vault_strategy(vault_id)
    logger.info(f"Vault {vault_id} range now [{strategy.tick_lower}, {strategy.tick_upper}]")
    return 0 if status.status == JobStatus.COMPLETED else 1


def main():
    config = get_config()
    sys.exit(asyncio.run(run(config)))


if __name__ == "__main__":
    main()
