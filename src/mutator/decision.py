from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Mapping, Optional

from src.policy.table import PolicyTable

logger = logging.getLogger(__name__)

EXCLUDED_NAMESPACES = frozenset({"kube-system", "kube-public"})

STATUS_ANNOTATION_KEY = "admission-webhook-example.citrix.com/status"
MUTATED_STATUS = "mutated"


@dataclass(frozen=True)
class ObjectDescriptor:
    namespace: str
    name: str
    annotations: Dict[str, str] = field(default_factory=dict)


def is_mutated(annotations: Optional[Mapping[str, str]]) -> bool:
    status = (annotations or {}).get(STATUS_ANNOTATION_KEY, "")
    return status.lower() == MUTATED_STATUS


def should_mutate(
    namespace: str,
    name: str,
    annotations: Optional[Mapping[str, str]],
    excluded_namespaces: AbstractSet[str],
    policy_table: PolicyTable,
) -> bool:
    """Decide whether the policy defaults must be applied to an object.

    All of the following must hold: the namespace is not excluded, a policy
    entry matches ``name`` case-insensitively, and the object does not carry
    the ``mutated`` status marker yet.
    """

    if namespace in excluded_namespaces:
        logger.info("Skip mutation for %s for it's in special namespace:%s", name, namespace)
        return False

    required = policy_table.lookup(name) is not None
    if required and is_mutated(annotations):
        required = False

    logger.info("Mutation policy for %s/%s: required:%s", namespace, name, required)
    return required


__all__ = [
    "EXCLUDED_NAMESPACES",
    "MUTATED_STATUS",
    "STATUS_ANNOTATION_KEY",
    "ObjectDescriptor",
    "is_mutated",
    "should_mutate",
]
