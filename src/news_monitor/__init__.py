"""News monitoring pipeline: ingest, decode aggregator links, enrich with AI metadata."""

__version__ = "0.1.0"
