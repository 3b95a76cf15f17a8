from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Mapping, Optional

import jsonpatch

from src.common.errors import PatchError
from src.policy.table import PolicyTable

from .decision import MUTATED_STATUS, STATUS_ANNOTATION_KEY


ANNOTATIONS_PATH = "/metadata/annotations"


def merge_annotations(
    current: Optional[Mapping[str, str]],
    defaults: Mapping[str, str],
) -> Dict[str, str]:
    """Overlay ``defaults`` on ``current``; policy values win on key clashes."""

    merged = dict(current or {})
    merged.update(defaults)
    return merged


def build_patch(
    name: str,
    current_annotations: Optional[Mapping[str, str]],
    policy_table: PolicyTable,
    *,
    stamp_status: bool = False,
) -> List[Dict[str, Any]]:
    """Synthesize the JSON patch that applies the policy defaults for ``name``.

    A single ``add`` at ``/metadata/annotations`` replaces the whole map, which
    RFC 6902 defines as a replace when the member already exists. A concurrent
    update to the object's annotations between read and apply is lost.
    """

    annotations = merge_annotations(current_annotations, policy_table.defaults_for(name))
    if stamp_status:
        annotations[STATUS_ANNOTATION_KEY] = MUTATED_STATUS
    return [
        {
            "op": "add",
            "path": ANNOTATIONS_PATH,
            "value": dict(sorted(annotations.items())),
        }
    ]


def encode_patch(patch: List[Dict[str, Any]]) -> bytes:
    return json.dumps(patch, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def apply_patch(document: Dict[str, Any], patch: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a patched copy of ``document``; the input is left untouched."""

    try:
        return jsonpatch.apply_patch(copy.deepcopy(document), patch, in_place=True)
    except Exception as exc:
        raise PatchError(f"bad path or conflict: {exc}") from exc


__all__ = [
    "ANNOTATIONS_PATH",
    "apply_patch",
    "build_patch",
    "encode_patch",
    "merge_annotations",
]
