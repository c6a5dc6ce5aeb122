"""
Named failure conditions for the vault orchestrator.

Every rejected operation raises one of these. Callers (relayers, scripts)
branch on the class, never on the message text. The four category bases
tell an off-chain caller whether resubmitting can help.
"""


class VaultError(Exception):
    """Base class for every core failure."""


class ValidationFailure(VaultError):
    """Bad input shape or value. No state was changed."""


class AuthorizationFailure(VaultError):
    """Caller, signer or nonce not accepted."""


class TemporalFailure(VaultError):
    """Payload outside its validity window. A fresh signature is required."""


class ExecutionFailure(VaultError):
    """A downstream mutation failed and the transaction was rolled back."""


# Validation

class InvalidTokens(ValidationFailure):
    pass


class ZeroAddress(ValidationFailure):
    pass


class InvalidAddress(ValidationFailure):
    """Value is not a 20-byte hex address."""


class VaultNotFound(ValidationFailure):
    pass


class VaultInactive(ValidationFailure):
    pass


class InsufficientDeposit(ValidationFailure):
    pass


class InsufficientShares(ValidationFailure):
    pass


class InvalidTickRange(ValidationFailure):
    pass


class InvalidActionData(ValidationFailure):
    pass


class FeeTooHigh(ValidationFailure):
    pass


class NegativeFee(ValidationFailure):
    pass


class InsufficientBalance(ValidationFailure):
    pass


class InsufficientAllowance(ValidationFailure):
    pass


class StrategyNotRegistered(ValidationFailure):
    pass


class InvalidThreshold(ValidationFailure):
    pass


class MalformedPayload(ValidationFailure):
    pass


class EnforcedPause(ValidationFailure):
    pass


class UnsupportedAction(ValidationFailure):
    """Relayer job asks for an action the executor cannot perform."""


# Authorization

class Unauthorized(AuthorizationFailure):
    """Caller is not the owner (or pending owner) required by the operation."""


class UnauthorizedRelayer(AuthorizationFailure):
    pass


class UnauthorizedSigner(AuthorizationFailure):
    pass


class InvalidSignature(AuthorizationFailure):
    pass


class InvalidNonce(AuthorizationFailure):
    pass


# Temporal

class PayloadExpired(TemporalFailure):
    pass


class PayloadTooOld(TemporalFailure):
    pass


# Execution

class ExecutionFailed(ExecutionFailure):
    pass


class ReentrantCall(ExecutionFailure):
    pass
