"""CandleGuard - validation and consistency pipeline for manually entered OHLCV candles."""

__version__ = "0.1.0"
