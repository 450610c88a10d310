"""CS Tutor API: entitlement-gated AI tutoring for UK Computer Science."""

__version__ = "0.1.0"
