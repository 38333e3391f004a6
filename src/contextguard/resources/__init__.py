"""Protected resources and their policies."""

from .catalog import ProtectedResource, ResourceCatalog
from .demo import SCENARIOS, demo_catalog, demo_context

__all__ = ["ProtectedResource", "ResourceCatalog", "SCENARIOS", "demo_catalog", "demo_context"]
