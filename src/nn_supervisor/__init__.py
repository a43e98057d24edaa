"""Supervisor for a self-correcting feed-forward network.

Builds or restores a predictor, trains it in batch or hierarchical rounds,
verifies served predictions against ground truth and retrains online on
every miss, then snapshots the network on shutdown.
"""

from __future__ import annotations

__version__ = "0.1.0"
