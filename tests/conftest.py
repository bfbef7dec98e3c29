"""Shared test setup.

dossier.config builds its global Settings at import, so the required
API key must be in the environment before any dossier module loads.
"""

import os

os.environ.setdefault("PERPLEXITY_API_KEY", "test_key_1234567890")
