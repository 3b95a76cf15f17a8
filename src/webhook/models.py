"""Wire models for the Kubernetes AdmissionReview envelope."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr

DEFAULT_API_VERSION = "admission.k8s.io/v1beta1"
JSON_PATCH_TYPE = "JSONPatch"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GroupVersionKind(_WireModel):
    group: str = ""
    version: str = ""
    kind: str = ""


class AdmissionRequest(_WireModel):
    uid: str = ""
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    namespace: str = ""
    name: str = ""
    operation: str = ""
    user_info: Optional[Dict[str, Any]] = Field(default=None, alias="userInfo")
    raw_object: Optional[Any] = Field(default=None, alias="object")


class Status(_WireModel):
    message: str = ""


class AdmissionResponse(_WireModel):
    uid: Optional[str] = None
    allowed: bool = False
    patch: Optional[str] = Field(default=None, description="Base64 encoded JSON patch")
    patch_type: Optional[str] = Field(default=None, alias="patchType")
    status: Optional[Status] = None


class AdmissionReview(_WireModel):
    api_version: str = Field(default=DEFAULT_API_VERSION, alias="apiVersion")
    kind: str = "AdmissionReview"
    request: Optional[AdmissionRequest] = None
    response: Optional[AdmissionResponse] = None


class ObjectMeta(_WireModel):
    name: StrictStr = ""
    namespace: StrictStr = ""
    annotations: Optional[Dict[StrictStr, StrictStr]] = None


class ResourceObject(_WireModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)


__all__ = [
    "DEFAULT_API_VERSION",
    "JSON_PATCH_TYPE",
    "AdmissionRequest",
    "AdmissionResponse",
    "AdmissionReview",
    "GroupVersionKind",
    "ObjectMeta",
    "ResourceObject",
    "Status",
]
