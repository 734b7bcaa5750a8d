"""
QMC Integrator - deterministic parallel quasi-Monte-Carlo integration.

Splits a sample budget into contiguous index ranges, evaluates a Halton
low-discrepancy sequence on each range concurrently under a bounded worker
budget, and folds the partial counts into a single estimate of pi.
"""

__version__ = "1.0.0"
__author__ = "Taofik Bishi"
