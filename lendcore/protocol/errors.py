"""Protocol errors.

Codes follow the numbering of the deployed pool so that failures can be
matched against on-chain reverts (e.g. ``83`` for an invalid optimal usage
ratio).
"""


class ProtocolError(Exception):
    """Base error class for protocol errors."""

    code: str = ""

    def __init__(self, message: str | None = None) -> None:
        self.message = message or (self.__doc__ or "").strip()
        super().__init__(f"{self.message} (code {self.code})" if self.code else self.message)


class MathOverflowError(ArithmeticError):
    """Fixed-point result does not fit in 256 bits."""


# --- Configuration errors: rejected at write time, never clamped ---


class ConfigurationError(ProtocolError):
    """Invalid reserve or interest rate configuration."""


class InvalidOptimalUsageRatio(ConfigurationError):
    """Optimal usage ratio must be within [1%, 99%]."""

    code = "83"


class Slope2MustBeGteSlope1(ConfigurationError):
    """Variable rate slope2 must be greater than or equal to slope1."""

    code = "95"


class InvalidMaxRate(ConfigurationError):
    """Base rate plus both slopes exceeds the maximum borrow rate."""

    code = "92"


class InvalidReserveFactor(ConfigurationError):
    """Reserve factor must be within [0, 100%]."""

    code = "67"


class InvalidBorrowCap(ConfigurationError):
    """Invalid borrow cap for the reserve."""

    code = "68"


class InvalidSupplyCap(ConfigurationError):
    """Invalid supply cap for the reserve."""

    code = "69"


class ZeroAddressNotValid(ConfigurationError):
    """Asset identifier must be non-empty."""

    code = "77"


class ReserveAlreadyAdded(ConfigurationError):
    """Reserve has already been added to the reserve list."""

    code = "49"


class NoMoreReservesAllowed(ConfigurationError):
    """Maximum number of reserves reached."""

    code = "52"


# --- Validation errors raised by operation logic ---


class ValidationError(ProtocolError):
    """Operation rejected by validation."""


class InvalidAmount(ValidationError):
    """Amount must be greater than 0."""

    code = "26"


class ReserveInactive(ValidationError):
    """Action requires an active reserve."""

    code = "27"


class ReserveFrozen(ValidationError):
    """Action cannot be performed because the reserve is frozen."""

    code = "28"


class ReservePaused(ValidationError):
    """Action cannot be performed because the reserve is paused."""

    code = "29"


class BorrowingNotEnabled(ValidationError):
    """Borrowing is not enabled."""

    code = "30"


class NotEnoughAvailableUserBalance(ValidationError):
    """User cannot withdraw more than the available balance."""

    code = "32"


class NoDebtOfSelectedType(ValidationError):
    """User does not have outstanding variable debt on this reserve."""

    code = "39"


class BorrowCapExceeded(ValidationError):
    """Borrow cap is exceeded."""

    code = "50"


class SupplyCapExceeded(ValidationError):
    """Supply cap is exceeded."""

    code = "51"


class UnderlyingClaimableRightsNotZero(ValidationError):
    """The underlying claimable rights are not zero."""

    code = "54"


class VariableDebtSupplyNotZero(ValidationError):
    """Variable debt supply is not zero."""

    code = "56"


class OperationNotSupported(ValidationError):
    """Operation not supported."""

    code = "80"


# --- Degenerate operations: rounding to zero is rejected, not no-op'd ---


class DegenerateOperationError(ProtocolError):
    """Amount rounds to zero after scaling."""


class InvalidMintAmount(DegenerateOperationError):
    """Invalid amount to mint."""

    code = "12"


class InvalidBurnAmount(DegenerateOperationError):
    """Invalid amount to burn."""

    code = "13"


# --- Invariant violations: integration errors, abort the operation ---


class InvariantViolation(ProtocolError):
    """Internal invariant violated."""


class AssetNotListed(InvariantViolation):
    """Asset is not listed."""

    code = "82"


class ScaledBalanceUnderflow(InvariantViolation):
    """Scaled balance is lower than the amount being removed."""


class ReserveInvariantError(InvariantViolation):
    """Reserve accounting would become inconsistent."""
