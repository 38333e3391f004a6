"""
Protected resource catalog.

Holds resource metadata and the policy attached to each resource at
upload time. Policies are validated here, at creation, so malformed ones
never reach the evaluator through the catalog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import yaml

from ..exceptions import PolicyError, ResourceConflictError, ResourceNotFoundError
from ..policy.models import AccessPolicy

logger = logging.getLogger(__name__)


@dataclass
class ProtectedResource:
    """A stored artifact and its access policy."""
    resource_id: str
    name: str
    owner: str
    policy: AccessPolicy = field(default_factory=AccessPolicy)
    size: int = 0
    uploaded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "name": self.name,
            "owner": self.owner,
            "size": self.size,
            "uploaded_at": self.uploaded_at,
            "policy": self.policy.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProtectedResource:
        try:
            resource_id = str(data.get("resource_id", data.get("id")))
            name = data["name"]
        except KeyError as exc:
            raise PolicyError(f"Resource definition missing field {exc}") from exc
        if resource_id == "None":
            raise PolicyError("Resource definition missing field 'resource_id'")

        try:
            size = int(data.get("size", 0))
        except (TypeError, ValueError) as exc:
            raise PolicyError(f"Resource size must be an integer, got {data.get('size')!r}") from exc

        uploaded_at = data.get("uploaded_at", data.get("uploadedAt"))
        if isinstance(uploaded_at, datetime):
            uploaded_at = uploaded_at.isoformat()

        return cls(
            resource_id=resource_id,
            name=str(name),
            owner=str(data.get("owner", data.get("uploadedBy", ""))),
            policy=AccessPolicy.from_dict(data.get("policy") or {}),
            size=size,
            uploaded_at=uploaded_at or datetime.now(timezone.utc).isoformat(),
        )


class ResourceCatalog:
    """Resource metadata store keyed by resource id."""

    def __init__(self):
        self.resources: dict[str, ProtectedResource] = {}

    def add(self, resource: ProtectedResource) -> ProtectedResource:
        """
        Register a resource.

        Raises PolicyError for a malformed policy and ResourceConflictError
        when the id is taken; a registered policy is never replaced.
        """
        if resource.resource_id in self.resources:
            raise ResourceConflictError(f"Resource {resource.resource_id} already exists")
        try:
            resource.policy.validate()
        except PolicyError as exc:
            raise PolicyError(f"Resource {resource.resource_id}: {exc}") from exc
        self.resources[resource.resource_id] = resource
        logger.debug("Registered resource %s (%s)", resource.resource_id, resource.name)
        return resource

    def get(self, resource_id: str) -> ProtectedResource:
        resource = self.resources.get(resource_id)
        if resource is None:
            raise ResourceNotFoundError(f"Unknown resource: {resource_id}")
        return resource

    def remove(self, resource_id: str) -> bool:
        return self.resources.pop(resource_id, None) is not None

    def for_owner(self, owner: str) -> list[ProtectedResource]:
        return [r for r in self.resources.values() if r.owner == owner]

    def load_yaml(self, yaml_str: str) -> list[ProtectedResource]:
        """Load resources from a YAML document with a `resources` list."""
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as exc:
            raise PolicyError(f"Invalid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise PolicyError("Resource document must be a mapping")

        entries = data.get("resources", [data] if "name" in data else [])
        loaded = [ProtectedResource.from_dict(rd) for rd in entries]
        # All or nothing
        seen = set(self.resources)
        for resource in loaded:
            if resource.resource_id in seen:
                raise ResourceConflictError(f"Resource {resource.resource_id} already exists")
            seen.add(resource.resource_id)
            issues = resource.policy.problems()
            if issues:
                raise PolicyError(f"Resource {resource.resource_id}: {'; '.join(issues)}")
        for resource in loaded:
            self.add(resource)
        return loaded

    def export_yaml(self) -> str:
        data = {"resources": [r.to_dict() for r in self.resources.values()]}
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def summary(self) -> dict[str, Any]:
        return {
            "total_resources": len(self.resources),
            "step_up_required": sum(1 for r in self.resources.values() if r.policy.require_step_up),
            "resources": [
                {"resource_id": r.resource_id, "name": r.name, "owner": r.owner}
                for r in self.resources.values()
            ],
        }

    def __len__(self) -> int:
        return len(self.resources)

    def __contains__(self, resource_id: str) -> bool:
        return resource_id in self.resources
