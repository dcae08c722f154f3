"""Domain services for the Synapse knowledge base."""

from synapse_kb.services.context import ServiceContext

__all__ = ["ServiceContext"]
