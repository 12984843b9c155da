from .base import ExtractionResult, Extractor, ProductRecord
from .embedded import EmbeddedStateExtractor
from .markup import ProductCardExtractor
from .pipeline import ExtractionPipeline, default_extractors
from .structured import StructuredDataExtractor

__all__ = [
    "EmbeddedStateExtractor",
    "ExtractionPipeline",
    "ExtractionResult",
    "Extractor",
    "ProductCardExtractor",
    "ProductRecord",
    "StructuredDataExtractor",
    "default_extractors",
]
