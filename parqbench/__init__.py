"""parqbench: browse Parquet and CSV files with SQL filtering and column sorting."""

__version__ = "0.3.0"
