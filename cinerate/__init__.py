"""Bayesian movie rating engine with a continuously refreshed global prior."""

__version__ = "0.1.0"
