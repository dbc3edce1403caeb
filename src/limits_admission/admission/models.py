"""
Admission review wire models.

Covers the subset of ``admission.k8s.io/v1`` (and the older ``v1beta1``,
which has the same shape) that the controller reads and writes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ADMISSION_API_VERSION = "admission.k8s.io/v1"

CREATE = "CREATE"
UPDATE = "UPDATE"
VALIDATED_OPERATIONS = frozenset({CREATE, UPDATE})


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GroupVersionKind(_WireModel):
    group: str = ""
    version: str = ""
    kind: str = ""


class UserInfo(_WireModel):
    username: str = ""
    uid: str = ""
    groups: list[str] = Field(default_factory=list)


class AdmissionRequest(_WireModel):
    uid: str
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    operation: str = ""
    name: str = ""
    namespace: str = ""
    object: Any = None
    user_info: UserInfo = Field(default_factory=UserInfo, alias="userInfo")
    dry_run: bool | None = Field(default=None, alias="dryRun")


class Status(_WireModel):
    message: str = ""
    code: int | None = None


class AdmissionResponse(_WireModel):
    uid: str
    allowed: bool
    status: Status | None = None


class AdmissionReview(_WireModel):
    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = "AdmissionReview"
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
