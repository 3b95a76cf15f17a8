"""Error taxonomy shared by the policy table, mutator, and webhook adapter."""

from __future__ import annotations


class WebhookError(Exception):
    """Base class for errors raised while handling admission reviews."""


class DecodeError(WebhookError):
    """Raised when the inbound payload is not a decodable AdmissionReview."""


class UnmarshalError(WebhookError):
    """Raised when the embedded resource cannot be read as the expected kind."""


class ConfigError(WebhookError):
    """Raised when the policy document is missing or malformed."""


class PatchError(WebhookError):
    """Raised when a synthesized patch cannot be applied to a manifest."""


__all__ = ["WebhookError", "DecodeError", "UnmarshalError", "ConfigError", "PatchError"]
