"""AuthorityPilot: LinkedIn personal-brand automation backend."""

__version__ = "0.1.0"
