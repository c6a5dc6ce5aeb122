import os
from typing import TypeVar, Type, Optional

from dotenv import load_dotenv

load_dotenv()

T = TypeVar("T")


def get_env_variable(name: str, type_: Type[T], default: Optional[T]) -> Optional[T]:
    """Type-safe wrapper for `os.getenv`.

    Args:
        name (str): Name of the environment variable.
        type_ (Type[T]): Type of the environment variable.
        default (T): Default value if the environment variable is not set.

    Returns:
        T: Value of the environment variable, or None when it is unset
        and the default is None.

    Usage:
        ```python
        from vault.utils.env import get_env_variable

        # Get an integer environment variable with a default value.
        get_env_variable("MAX_PAYLOAD_AGE", int, 3600)
        ```
    """
    value = os.getenv(name, default)
    if value is None:
        return None
    try:
        return type_.__call__(value)
    except ValueError:
        raise ValueError(
            f"Environment variable '{name}' is not of type '{type_.__name__}'."
        )


# Chain / signing domain
CHAIN_ID = get_env_variable(
    name="CHAIN_ID",
    type_=int,
    default=5611,
)
PROTOCOL_NAME = get_env_variable(
    name="PROTOCOL_NAME",
    type_=str,
    default="AILiquidityOrchestrator",
)
PROTOCOL_VERSION = get_env_variable(
    name="PROTOCOL_VERSION",
    type_=str,
    default="1",
)
MAX_PAYLOAD_AGE = get_env_variable(
    name="MAX_PAYLOAD_AGE",
    type_=int,
    default=3600,
)

# Ledger
DEFAULT_PROTOCOL_FEE_BPS = get_env_variable(
    name="DEFAULT_PROTOCOL_FEE_BPS",
    type_=int,
    default=50,
)
MIN_DEPOSIT = get_env_variable(
    name="MIN_DEPOSIT",
    type_=int,
    default=1_000_000,
)

# Optimizer configuration
REBALANCE_COOLDOWN = get_env_variable(
    name="REBALANCE_COOLDOWN",
    type_=int,
    default=3600,
)
PAYLOAD_TTL = get_env_variable(
    name="PAYLOAD_TTL",
    type_=int,
    default=600,
)
OPTIMIZER_PRIVATE_KEY = get_env_variable(
    name="OPTIMIZER_PRIVATE_KEY",
    type_=str,
    default=None,
)

# Relayer job store
RELAYER_POSTGRES_HOST = get_env_variable(
    name="RELAYER_POSTGRES_HOST",
    type_=str,
    default="localhost",
)
RELAYER_POSTGRES_PORT = get_env_variable(
    name="RELAYER_POSTGRES_PORT",
    type_=int,
    default=5432,
)
RELAYER_POSTGRES_DB = get_env_variable(
    name="RELAYER_POSTGRES_DB",
    type_=str,
    default="vault_relayer",
)
RELAYER_POSTGRES_USER = get_env_variable(
    name="RELAYER_POSTGRES_USER",
    type_=str,
    default="relayer",
)
RELAYER_POSTGRES_PASSWORD = get_env_variable(
    name="RELAYER_POSTGRES_PASSWORD",
    type_=str,
    default="",
)
