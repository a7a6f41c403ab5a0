"""
Sprite Atlas

Detects the visually disjoint elements of a mostly transparent image,
classifies and names them, and describes them as frames of one shared
texture atlas.

Public API:
    - analyze_spritesheet: Run the whole pipeline on a decoded image
    - AnalysisResult: Descriptor, sprites and diagnostics of one analysis
    - AnalysisConfig: Pipeline configuration
    - export_descriptor: Serialize a descriptor (TexturePacker, PixiJS, Spine)
"""

from sprite_atlas.api import AnalysisResult, DebugImage, analyze_spritesheet
from sprite_atlas.atlas import (
    AtlasDescriptor,
    AtlasFrame,
    ExportFormat,
    descriptor_from_texturepacker,
    export_descriptor,
    validate_atlas,
)
from sprite_atlas.classify import ClassifierThresholds
from sprite_atlas.config import AnalysisConfig
from sprite_atlas.errors import AtlasError, ConfigurationError, InputError, SpriteAtlasError
from sprite_atlas.models import SeparationMethod, SpriteType
from sprite_atlas.morphology import MorphOp
from sprite_atlas.separation import SeparationOptions
from sprite_atlas.structuring import KernelShape, StructuringElement

__version__ = "0.1.0"
__all__ = [
    "analyze_spritesheet", "AnalysisResult", "DebugImage", "AnalysisConfig",
    "AtlasDescriptor", "AtlasFrame", "ExportFormat", "export_descriptor",
    "descriptor_from_texturepacker", "validate_atlas", "ClassifierThresholds",
    "SeparationMethod", "SeparationOptions", "SpriteType", "MorphOp",
    "KernelShape", "StructuringElement", "SpriteAtlasError", "InputError",
    "ConfigurationError", "AtlasError", "__version__",
]
