"""delta-trend-agent: multi-timeframe trend signals for streamed perpetual markets."""

__version__ = "0.1.0"
