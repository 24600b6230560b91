"""Material allocation adapters."""

from .selected_materials_allocator import SelectedMaterialsAllocator

__all__ = ["SelectedMaterialsAllocator"]
