"""Multi-platform module resolution for JavaScript bundles.

Usage:
    from platform_resolver import ResolverSettings, create_resolution_pipeline

    with create_resolution_pipeline(ResolverSettings(project_root=root)) as pipeline:
        resolution = pipeline.resolve_specifier("react-native", root / "App.js", "web")
"""

from .aliases import AliasTable
from .aliases import PatternAlias
from .aliases import PlatformAlias
from .errors import FailedToResolveNameError
from .errors import FailedToResolvePathError
from .errors import MisconfiguredExternalError
from .errors import ModuleNotResolvedError
from .errors import ResolutionError
from .errors import VirtualModuleCollisionError
from .externals import ExternalRule
from .factory import create_resolution_pipeline
from .models import EMPTY
from .models import Asset
from .models import Empty
from .models import NodeExternal
from .models import Resolution
from .models import ResolutionContext
from .models import ResolutionRequest
from .models import SourceFile
from .models import WeakExternal
from .pipeline import ResolutionPipeline
from .polyfills import get_polyfills
from .primitive import FileSystemResolver
from .settings import ResolverSettings
from .virtual_modules import VirtualModuleRegistry

__all__ = [
    "EMPTY",
    "AliasTable",
    "Asset",
    "Empty",
    "ExternalRule",
    "FailedToResolveNameError",
    "FailedToResolvePathError",
    "FileSystemResolver",
    "MisconfiguredExternalError",
    "ModuleNotResolvedError",
    "NodeExternal",
    "PatternAlias",
    "PlatformAlias",
    "Resolution",
    "ResolutionContext",
    "ResolutionError",
    "ResolutionPipeline",
    "ResolutionRequest",
    "ResolverSettings",
    "SourceFile",
    "VirtualModuleCollisionError",
    "VirtualModuleRegistry",
    "WeakExternal",
    "create_resolution_pipeline",
    "get_polyfills",
]
