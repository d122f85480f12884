# codes/models/__init__.py

from .registry_entry import CodeRegistryEntry

__all__ = ["CodeRegistryEntry"]
