"""Hash-partitioned word counting with frequency and location look-ups, plus connection set-up examples."""

__version__ = "0.1.0"