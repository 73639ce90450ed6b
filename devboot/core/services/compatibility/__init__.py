"""
Compatibility — load the support matrix, detect the host, check it.
"""

from devboot.core.services.compatibility.check import (
    CompatibilityReport,
    DefaultPrerequisiteChecker,
    PrerequisiteChecker,
    check_compatibility,
)
from devboot.core.services.compatibility.detector import (
    DefaultOSDetector,
    OSDetector,
    normalize_arch,
    normalize_os_name,
)
from devboot.core.services.compatibility.load import (
    EMBEDDED_COMPATIBILITY_FILE,
    load_compatibility_config,
    parse_compatibility_config,
    raw_embedded_config,
)

__all__ = [
    "EMBEDDED_COMPATIBILITY_FILE",
    "CompatibilityReport",
    "DefaultOSDetector",
    "DefaultPrerequisiteChecker",
    "OSDetector",
    "PrerequisiteChecker",
    "check_compatibility",
    "load_compatibility_config",
    "normalize_arch",
    "normalize_os_name",
    "parse_compatibility_config",
    "raw_embedded_config",
]
