"""DOSSIER: company and person intelligence assembled from many small provider queries."""

__version__ = "0.3.0"
