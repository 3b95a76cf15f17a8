"""Request adapter between Kubernetes AdmissionReview traffic and the mutator."""

from .config import ServerOptions
from .review import decode, encode, extract_object, mutate, review_mutation

__all__ = [
    "ServerOptions",
    "decode",
    "encode",
    "extract_object",
    "mutate",
    "review_mutation",
]
