"""
Equalizer Utils - shared engine utilities.

Submodules:
- core: Logging and error payloads
- db: Database connection (PostgreSQL or in-memory mock)
- vault: Configuration and secrets (Vault with environment fallback)
"""

from utils import core
from utils import db
from utils import vault

__all__ = [
    "core",
    "db",
    "vault",
]
