"""driftguard: fleet configuration drift detection and additive reconciliation."""

__version__ = "0.1.0"
