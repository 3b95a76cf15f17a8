"""Mutation decision engine and JSON patch synthesizer."""

from .decision import (
    EXCLUDED_NAMESPACES,
    MUTATED_STATUS,
    STATUS_ANNOTATION_KEY,
    ObjectDescriptor,
    should_mutate,
)
from .patch import ANNOTATIONS_PATH, apply_patch, build_patch, encode_patch

__all__ = [
    "ANNOTATIONS_PATH",
    "EXCLUDED_NAMESPACES",
    "MUTATED_STATUS",
    "STATUS_ANNOTATION_KEY",
    "ObjectDescriptor",
    "apply_patch",
    "build_patch",
    "encode_patch",
    "should_mutate",
]
