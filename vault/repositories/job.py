"""
Async relayer job repository.

Uses Tortoise ORM for all database operations.
All methods are async.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from vault.models.job import JobAction, JobStatus, RelayerJob

logger = logging.getLogger(__name__)


class RelayerJobRepository:
    """Create/read store for relayer submissions."""

    async def create_job(
        self,
        vault_id: int,
        payload: Dict[str, Any],
        signature: str,
        action: JobAction = JobAction.REBALANCE,
    ) -> RelayerJob:
        """
        Queue a new job.

        Args:
            vault_id: Target vault
            payload: Wire-form (camelCase) rebalance payload
            signature: 0x-prefixed payload signature
            action: Requested action

        Returns:
            Created RelayerJob in QUEUED status
        """
        job = await RelayerJob.create(
            job_id=uuid.uuid4().hex,
            vault_id=vault_id,
            action=action,
            status=JobStatus.QUEUED,
            payload=payload,
            signature=signature,
        )
        logger.info(f"Queued relayer job {job.job_id} for vault {vault_id}")
        return job

    async def get_job(self, job_id: str) -> Optional[RelayerJob]:
        return await RelayerJob.get_or_none(job_id=job_id)

    async def claim_job(self, job_id: str) -> bool:
        """
        Move a job from QUEUED to PENDING in one conditional update.

        Returns:
            True if this call claimed the job, False if it was not queued
        """
        updated = await RelayerJob.filter(job_id=job_id, status=JobStatus.QUEUED).update(
            status=JobStatus.PENDING
        )
        if updated:
            logger.info(f"Relayer job {job_id} -> {JobStatus.PENDING.value}")
        return updated > 0

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        tx_hash: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        await RelayerJob.filter(job_id=job_id).update(
            status=status, tx_hash=tx_hash, error=error
        )
        logger.info(f"Relayer job {job_id} -> {status.value}")

    async def list_jobs(
        self, status: Optional[JobStatus] = None, vault_id: Optional[int] = None
    ) -> List[RelayerJob]:
        query = RelayerJob.all()
        if status is not None:
            query = query.filter(status=status)
        if vault_id is not None:
            query = query.filter(vault_id=vault_id)
        return await query.order_by("created_at", "id")
