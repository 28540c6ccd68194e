"""
SiteGate - guarded filesystem abilities for a site installation.

Gates:
- FileSystemGate: path containment, content scanning, backups, change log
- AbilityGate: named abilities with argument contracts and capability checks
- Config: env / .env / JSON configuration
"""

from sitegate import Config
from sitegate import FileSystemGate
from sitegate import AbilityGate

__version__ = "1.0.0"

__all__ = [
    "Config",
    "FileSystemGate",
    "AbilityGate",
    "__version__",
]
