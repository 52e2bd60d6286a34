"""Semantic memory engine: chunking, embedding, deduplicated storage and similarity search."""

from semantic_memory.services.memory_manager import MemoryManager, create_memory_manager
from semantic_memory.services.owner_proxy import OwnerMemoryProxy

__version__ = "0.1.0"

__all__ = ["MemoryManager", "OwnerMemoryProxy", "create_memory_manager"]
