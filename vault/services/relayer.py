"""
Relayer service.

Queues signed rebalance payloads and submits them to the executor. The
relayer never retries: a failed job records the named failure so whoever
submitted it can decide to re-sign (e.g. InvalidNonce) or abandon
(e.g. PayloadExpired).
"""
import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from protocol.errors import UnsupportedAction, VaultError
from protocol.models import RebalancePayload, SignedPayload
from vault.chain import LocalChain
from vault.executor import RebalanceExecutor
from vault.models.job import JobAction, JobStatus
from vault.repositories.job import RelayerJobRepository
from vault.utils.web3 import normalize_address

logger = logging.getLogger(__name__)


class JobStatusView(BaseModel):
    """What a status poll returns."""
    job_id: str = Field(..., description="Job identifier")
    vault_id: int = Field(..., description="Target vault")
    status: JobStatus = Field(..., description="queued|pending|completed|failed")
    tx_hash: Optional[str] = Field(None, description="Transaction hash once executed")
    error: Optional[str] = Field(None, description="Named failure when status is failed")


class RelayerService:
    """Submits queued payloads through the RebalanceExecutor."""

    def __init__(
        self,
        chain: LocalChain,
        executor: RebalanceExecutor,
        relayer_address: str,
        job_repository: Optional[RelayerJobRepository] = None,
    ):
        self.chain = chain
        self.executor = executor
        self.relayer_address = normalize_address(relayer_address)
        self.job_repository = job_repository or RelayerJobRepository()

    async def submit_signal(
        self,
        vault_id: int,
        payload: Union[RebalancePayload, Dict[str, Any]],
        signature: str,
        action: JobAction = JobAction.REBALANCE,
    ) -> str:
        """
        Queue a signed payload.

        Returns:
            The new job id
        """
        wire = payload.to_wire() if isinstance(payload, RebalancePayload) else dict(payload)
        job = await self.job_repository.create_job(vault_id, wire, signature, action)
        return job.job_id

    async def submit_signed(self, signed: SignedPayload) -> str:
        return await self.submit_signal(signed.payload.vault_id, signed.payload, signed.signature)

    async def process_job(self, job_id: str) -> JobStatusView:
        """
        Execute one queued job and record the outcome.

        Raises:
            KeyError: If the job does not exist
        """
        job = await self.job_repository.get_job(job_id)
        if job is None:
            raise KeyError(f"Job {job_id} not found")
        if not await self.job_repository.claim_job(job_id):
            status = await self.get_status(job_id)
            logger.warning(f"Job {job_id} is {status.status.value}, not queued; skipping")
            return status

        try:
            if job.action != JobAction.REBALANCE:
                raise UnsupportedAction(f"Relayer cannot execute {job.action.value} jobs")
            with self.chain.transaction(self.relayer_address) as tx_hash:
                self.executor.execute_rebalance(
                    self.relayer_address, job.vault_id, job.payload, job.signature
                )
        except VaultError as e:
            error = f"{type(e).__name__}: {e}"
            logger.warning(f"Relayer job {job_id} failed: {error}")
            await self.job_repository.update_status(job_id, JobStatus.FAILED, error=error)
        else:
            await self.job_repository.update_status(job_id, JobStatus.COMPLETED, tx_hash=tx_hash)

        return await self.get_status(job_id)

    async def process_queued(self) -> List[JobStatusView]:
        """Process every queued job in submission order."""
        jobs = await self.job_repository.list_jobs(status=JobStatus.QUEUED)
        return [await self.process_job(job.job_id) for job in jobs]

    async def get_status(self, job_id: str) -> JobStatusView:
        job = await self.job_repository.get_job(job_id)
        if job is None:
            raise KeyError(f"Job {job_id} not found")
        return JobStatusView(
            job_id=job.job_id,
            vault_id=job.vault_id,
            status=job.status,
            tx_hash=job.tx_hash,
            error=job.error,
        )
