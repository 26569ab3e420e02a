"""Exception hierarchy for the portfolio optimizer."""


class PortfolioOptimizerError(Exception):
    """Base class for all optimizer errors."""


class InputValidationError(PortfolioOptimizerError, ValueError):
    """Invalid request input (holdings, total value, risk tolerance, config)."""


class DataUnavailableError(PortfolioOptimizerError):
    """Price or history data could not be obtained for a symbol.

    Raised by price sources and absorbed by the history loader, which
    substitutes a synthetic series.
    """

    def __init__(self, symbol: str, message: str = ""):
        self.symbol = symbol
        super().__init__(message or f"No data available for {symbol}")


class SymbolNotFoundError(DataUnavailableError):
    """The price source does not know the symbol."""


class PriceSourceUnavailableError(DataUnavailableError):
    """The price source could not be reached or answered with an error."""


class OptimizationError(PortfolioOptimizerError, RuntimeError):
    """Internal failure, e.g. a dimension mismatch or malformed weights."""
