"""Infrastructure adapters.

Import concrete adapters from their subpackages.
"""

__all__ = []
