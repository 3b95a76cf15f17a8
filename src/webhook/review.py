from __future__ import annotations

import base64
import json
import logging
from typing import AbstractSet, Any, Optional

from pydantic import ValidationError

from src.common.errors import DecodeError, UnmarshalError
from src.mutator.decision import EXCLUDED_NAMESPACES, ObjectDescriptor, should_mutate
from src.mutator.patch import build_patch, encode_patch
from src.policy.table import PolicyTable

from .models import (
    JSON_PATCH_TYPE,
    AdmissionRequest,
    AdmissionResponse,
    AdmissionReview,
    ResourceObject,
    Status,
)

logger = logging.getLogger(__name__)

DEFAULT_RESOURCE_KIND = "Ingress"


def decode(raw: bytes) -> AdmissionReview:
    """Parse an AdmissionReview envelope, raising ``DecodeError`` on any failure."""

    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise DecodeError(f"couldn't decode admission review: {exc}") from exc
    if not isinstance(data, dict):
        raise DecodeError("admission review must be a JSON object")
    try:
        return AdmissionReview.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(f"invalid admission review: {exc}") from exc


def encode(review: AdmissionReview) -> bytes:
    return review.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


def describe_object(raw_object: Any, fallback_namespace: str = "") -> ObjectDescriptor:
    """Read the identity and annotations out of a decoded resource body."""

    if not isinstance(raw_object, dict):
        raise UnmarshalError("could not unmarshal raw object: expected a JSON object")
    try:
        resource = ResourceObject.model_validate(raw_object)
    except ValidationError as exc:
        raise UnmarshalError(f"could not unmarshal raw object: {exc}") from exc
    metadata = resource.metadata
    return ObjectDescriptor(
        namespace=metadata.namespace or fallback_namespace,
        name=metadata.name,
        annotations=dict(metadata.annotations or {}),
    )


def extract_object(request: AdmissionRequest) -> ObjectDescriptor:
    return describe_object(request.raw_object, fallback_namespace=request.namespace)


def error_response(message: str, uid: Optional[str] = None) -> AdmissionResponse:
    return AdmissionResponse(uid=uid, allowed=False, status=Status(message=message))


def mutate(
    request: AdmissionRequest,
    policy_table: PolicyTable,
    *,
    resource_kind: str = DEFAULT_RESOURCE_KIND,
    excluded_namespaces: AbstractSet[str] = EXCLUDED_NAMESPACES,
    stamp_status: bool = False,
) -> AdmissionResponse:
    logger.info(
        "Mutating AdmissionReview for Kind=%s, Namespace=%s Name=%s UID=%s Operation=%s UserInfo=%s",
        request.kind.kind,
        request.namespace,
        request.name,
        request.uid,
        request.operation,
        request.user_info,
    )

    if request.kind.kind != resource_kind:
        logger.info("Skipping %s/%s of kind %s", request.namespace, request.name, request.kind.kind)
        return AdmissionResponse(uid=request.uid, allowed=True)

    try:
        descriptor = extract_object(request)
    except UnmarshalError as exc:
        logger.error("Could not unmarshal raw object: %s", exc)
        return error_response(str(exc), uid=request.uid)

    if not should_mutate(
        descriptor.namespace,
        descriptor.name,
        descriptor.annotations,
        excluded_namespaces,
        policy_table,
    ):
        logger.info("Skipping mutation for %s/%s due to policy check", descriptor.namespace, descriptor.name)
        return AdmissionResponse(uid=request.uid, allowed=True)

    patch = encode_patch(
        build_patch(descriptor.name, descriptor.annotations, policy_table, stamp_status=stamp_status)
    )
    logger.info("AdmissionResponse: patch=%s", patch.decode("utf-8"))
    return AdmissionResponse(
        uid=request.uid,
        allowed=True,
        patch=base64.b64encode(patch).decode("ascii"),
        patch_type=JSON_PATCH_TYPE,
    )


def review_mutation(
    raw: bytes,
    policy_table: PolicyTable,
    *,
    resource_kind: str = DEFAULT_RESOURCE_KIND,
    excluded_namespaces: AbstractSet[str] = EXCLUDED_NAMESPACES,
    stamp_status: bool = False,
) -> AdmissionReview:
    """Run one raw AdmissionReview through the mutation path.

    Every request-local failure becomes a response carrying ``allowed: false``
    and a message; nothing is raised to the transport.
    """

    try:
        review = decode(raw)
    except DecodeError as exc:
        logger.error("Can't decode body: %s", exc)
        return AdmissionReview(response=error_response(str(exc)))

    if review.request is None:
        logger.error("Admission review carries no request")
        return AdmissionReview(
            api_version=review.api_version,
            kind=review.kind,
            response=error_response("admission review carries no request"),
        )

    response = mutate(
        review.request,
        policy_table,
        resource_kind=resource_kind,
        excluded_namespaces=excluded_namespaces,
        stamp_status=stamp_status,
    )
    return AdmissionReview(api_version=review.api_version, kind=review.kind, response=response)


__all__ = [
    "DEFAULT_RESOURCE_KIND",
    "decode",
    "describe_object",
    "encode",
    "error_response",
    "extract_object",
    "mutate",
    "review_mutation",
]
