"""Custom exceptions for the will allocation engine.

This module defines the exception hierarchy for the application.

User-facing allocation problems (over-allocation, out-of-range input,
missing price data) are reported as result flags by the engine. The
exceptions below are raised by configuration loading, by the external
clients, and by the explicit ``raise_if_invalid`` helpers used before a
will is submitted.
"""


class WillAllocError(Exception):
    """Base exception for all will allocation errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(WillAllocError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Negative tolerance
        - Unknown over-allocation policy
        - Configuration file not found
    """

    pass


class DataError(WillAllocError):
    """Base exception for asset data errors.

    Parent class for all balance and price related exceptions.
    """

    pass


class DataProviderError(DataError):
    """Raised when a balance or price client fails to fetch data.

    Examples:
        - Price feed rate limit exceeded
        - Network connection failed
        - Wallet not connected
    """

    pass


class StaleAssetDataError(DataError):
    """Raised when asset data is required but the registry has no snapshot.

    Examples:
        - Submitting a will before the first balance refresh resolved
    """

    pass


class AllocationError(WillAllocError):
    """Base exception for allocation layer errors.

    Parent class for all allocation-related exceptions.
    """

    pass


class OverAllocationError(AllocationError):
    """Raised when an asset or the whole portfolio is allocated past 100%.

    Examples:
        - Two beneficiaries each holding 60% of BTC
        - Portfolio-level percentages summing to 120%
    """

    pass

