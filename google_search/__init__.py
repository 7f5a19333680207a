"""Browser-driven Google search with fingerprint persistence and challenge escalation."""

__version__ = "1.0.0"
