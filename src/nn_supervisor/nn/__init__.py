"""Network engine, concurrency guard and the verify/retrain control loop."""

from __future__ import annotations
