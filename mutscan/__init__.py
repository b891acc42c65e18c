"""
mutscan: annotated, merged mutation tables from whole-genome alignments.
"""

__version__ = "0.1.0"

from .core.io import FeatureIndexBuilder
from .variation.classifier import VariantClassifier
from .annotation.joiner import AnnotationJoiner
from .annotation.attributes import AttributeExtractor
from .variation.merger import IndelMerger, merge_rows
from .pipeline import MutationPipeline

__all__ = [
    "FeatureIndexBuilder",
    "VariantClassifier",
    "AnnotationJoiner",
    "AttributeExtractor",
    "IndelMerger",
    "merge_rows",
    "MutationPipeline"
]
