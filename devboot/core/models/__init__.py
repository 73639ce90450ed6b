"""
Domain models — value types shared across devboot.

All models are re-exported here for convenient access:

    from devboot.core.models import PackageInfo, SystemInfo, EscalationMethod
"""

from devboot.core.models.compatibility import (
    CompatibilityConfig,
    DistroConfig,
    OSConfig,
    PrerequisiteConfig,
)
from devboot.core.models.package import (
    DisplayMode,
    PackageInfo,
    PackageManagerInfo,
    RequestedPackageInfo,
)
from devboot.core.models.packagemap import ManagerMapping, PackageMappingCollection
from devboot.core.models.privilege import EscalationMethod, EscalationResult
from devboot.core.models.settings import BootstrapSettings, RequestedPackage
from devboot.core.models.system import PrerequisiteDetail, PrerequisiteStatus, SystemInfo

__all__ = [
    # compatibility.py
    "CompatibilityConfig",
    "DistroConfig",
    "OSConfig",
    "PrerequisiteConfig",
    # package.py
    "DisplayMode",
    "PackageInfo",
    "PackageManagerInfo",
    "RequestedPackageInfo",
    # packagemap.py
    "ManagerMapping",
    "PackageMappingCollection",
    # privilege.py
    "EscalationMethod",
    "EscalationResult",
    # settings.py
    "BootstrapSettings",
    "RequestedPackage",
    # system.py
    "PrerequisiteDetail",
    "PrerequisiteStatus",
    "SystemInfo",
]
