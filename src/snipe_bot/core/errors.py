"""Error taxonomy for trading, scanning and settings."""


class SnipeBotError(Exception):
    """Base class for all errors raised by the engine."""

    code = "error"


# ----------------------------------------------------------------------
# Collaborator failures
# ----------------------------------------------------------------------

class FeedError(SnipeBotError):
    """Market feed returned a non-2xx status or malformed JSON."""

    code = "feed_error"


class RpcError(SnipeBotError):
    """RPC node was unreachable or returned a JSON-RPC error."""

    code = "rpc_error"


# ----------------------------------------------------------------------
# Trade attempt failures
# ----------------------------------------------------------------------

class TradeError(SnipeBotError):
    """Raised inside a trade attempt; caught at the executor boundary."""

    code = "trade_error"


class NotConnectedError(TradeError):
    """No signer is connected."""

    code = "not_connected"


class MintLookupError(TradeError, LookupError):
    """Mint account could not be fetched or parsed."""

    code = "lookup_error"


class AuthorityRiskError(TradeError):
    """Mint or freeze authority has not been relinquished."""

    code = "authority_risk"


class SimulationFailedError(TradeError):
    """Pre-trade dry run was rejected."""

    code = "simulation_failed"


class NoRouteError(TradeError):
    """Quote provider returned no viable route."""

    code = "no_route"


class BuildError(TradeError):
    """Swap transaction could not be built."""

    code = "build_error"


class ImpactExceededError(TradeError):
    """Quoted price impact is above the configured ceiling."""

    code = "impact_exceeded"


class ZeroBalanceError(TradeError):
    """Owner holds none of the token being sold."""

    code = "zero_balance"


class AmountTooSmallError(TradeError):
    """Computed sell amount rounds down to zero base units."""

    code = "amount_too_small"


class SubmitError(TradeError):
    """Signer refused or failed to submit the transaction."""

    code = "submit_error"


class TransactionFailedError(TradeError):
    """Transaction landed on chain but its execution failed."""

    code = "transaction_failed"


class ConfirmationTimeout(SnipeBotError):
    """Signature was obtained but confirmation did not arrive in time.

    Never fails a trade; reported as a warning on the result.
    """

    code = "confirmation_timeout"


# ----------------------------------------------------------------------
# Operator input
# ----------------------------------------------------------------------

class LadderValidationError(SnipeBotError, ValueError):
    """Ladder edit input is malformed or violates ladder invariants."""

    code = "validation_error"


class SettingsImportError(SnipeBotError):
    """Settings document could not be applied; nothing was changed."""

    code = "settings_import_error"
