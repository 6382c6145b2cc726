"""
AdmissionReview wire models (`admission.k8s.io/v1` and `v1beta1`).

Only the fields the webhook reads are modeled; everything else is tolerated and ignored.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tobac.core.models import Identity, ResourceView
from tobac.providers.base import ResourceRef

ADMISSION_API_VERSION = "admission.k8s.io/v1"
SUPPORTED_API_VERSIONS = ("admission.k8s.io/v1", "admission.k8s.io/v1beta1")


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class UserInfo(_WireModel):
    username: str = ""
    uid: Optional[str] = None
    groups: List[str] = Field(default_factory=list)


class GroupVersionResource(_WireModel):
    group: str = ""
    version: str = ""
    resource: str = ""


class AdmissionRequest(_WireModel):
    uid: str
    resource: GroupVersionResource = Field(default_factory=GroupVersionResource)
    sub_resource: Optional[str] = Field(default=None, alias="subResource")
    name: Optional[str] = None
    namespace: Optional[str] = None
    operation: str = ""
    user_info: UserInfo = Field(default_factory=UserInfo, alias="userInfo")
    object: Optional[Dict[str, Any]] = None
    old_object: Optional[Dict[str, Any]] = Field(default=None, alias="oldObject")
    dry_run: Optional[bool] = Field(default=None, alias="dryRun")

    @property
    def identity(self) -> Identity:
        return Identity.of(self.user_info.username, self.user_info.groups)

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(
            group=self.resource.group,
            version=self.resource.version,
            resource=self.resource.resource,
            name=self.name or "",
            namespace=self.namespace or None,
        )

    def submitted_view(self) -> Optional[ResourceView]:
        if self.operation == "DELETE" or self.object is None:
            return None
        return ResourceView.from_object(self.object)

    def existing_view(self) -> Optional[ResourceView]:
        if self.operation == "CREATE" or self.old_object is None:
            return None
        return ResourceView.from_object(self.old_object)


class AdmissionReview(_WireModel):
    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = "AdmissionReview"
    request: AdmissionRequest


def parse_review(payload: Any) -> AdmissionReview:
    """Validate a decoded JSON body. Raises ValueError (incl. pydantic ValidationError)."""
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    if not isinstance(payload.get("request"), dict):
        raise ValueError("admission review has no request")
    return AdmissionReview.model_validate(payload)


def review_response(
    review: AdmissionReview,
    *,
    allowed: bool,
    message: str,
    code: str,
    http_code: Optional[int] = None,
) -> Dict[str, Any]:
    """Build the AdmissionReview reply, echoing the caller's apiVersion and request UID."""
    status: Dict[str, Any] = {"message": message}
    if not allowed:
        status["code"] = http_code or 403
        status["reason"] = "Forbidden" if (http_code or 403) == 403 else "InternalError"

    api_version = review.api_version if review.api_version in SUPPORTED_API_VERSIONS else ADMISSION_API_VERSION
    return {
        "apiVersion": api_version,
        "kind": "AdmissionReview",
        "response": {
            "uid": review.request.uid,
            "allowed": allowed,
            "status": status,
            # The API server prefixes keys with the webhook name in the audit log.
            "auditAnnotations": {"decision": code},
        },
    }
