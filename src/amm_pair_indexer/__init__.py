"""Analytics for Uniswap-V2 style pair events."""

__version__ = "0.1.0"
