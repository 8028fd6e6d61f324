"""Delta ingestion, artifact merge, session status, and anomaly storage for multi-agent research threads."""

__version__ = "0.1.0"
