"""
Tortoise ORM models for the relayer job store.

All database operations are async using Tortoise ORM.
"""
from enum import Enum
from typing import Optional

from tortoise import Tortoise, fields
from tortoise.models import Model

from vault.utils.env import (
    RELAYER_POSTGRES_HOST,
    RELAYER_POSTGRES_PORT,
    RELAYER_POSTGRES_DB,
    RELAYER_POSTGRES_USER,
    RELAYER_POSTGRES_PASSWORD,
)


class JobStatus(str, Enum):
    """Relayer job status enum."""

    QUEUED = "queued"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class JobAction(str, Enum):
    """Action a submitted signal asks for."""

    REBALANCE = "rebalance"
    WITHDRAW_TO_STABLE = "withdraw_to_stable"


class RelayerJob(Model):
    """
    A signed rebalance payload submitted for on-chain execution.
    """

    id = fields.IntField(pk=True)
    job_id = fields.CharField(max_length=64, unique=True, index=True)
    vault_id = fields.IntField(index=True)
    action = fields.CharEnumField(JobAction, default=JobAction.REBALANCE)
    status = fields.CharEnumField(JobStatus, default=JobStatus.QUEUED, index=True)
    payload = fields.JSONField()
    signature = fields.CharField(max_length=132)
    tx_hash = fields.CharField(max_length=66, null=True)
    error = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "relayer_jobs"

    def __str__(self):
        return f"RelayerJob({self.job_id}, {self.status})"


# Tortoise ORM configuration
TORTOISE_ORM = {
    "connections": {
        "default": {
            "engine": "tortoise.backends.asyncpg",
            "credentials": {
                "host": RELAYER_POSTGRES_HOST,
                "port": RELAYER_POSTGRES_PORT,
                "user": RELAYER_POSTGRES_USER,
                "password": RELAYER_POSTGRES_PASSWORD,
                "database": RELAYER_POSTGRES_DB,
            },
        }
    },
    "apps": {
        "models": {
            "models": ["vault.models.job"],
            "default_connection": "default",
        }
    },
}


async def init_db(db_url: Optional[str] = None):
    """
    Initialize Tortoise ORM.

    Args:
        db_url: Optional database URL (e.g. sqlite://:memory: for tests)
    """
    if db_url:
        await Tortoise.init(db_url=db_url, modules={"models": ["vault.models.job"]})
    else:
        await Tortoise.init(config=TORTOISE_ORM)

    await Tortoise.generate_schemas()


async def close_db():
    """Close Tortoise ORM connections."""
    await Tortoise.close_connections()
