"""
Data definitions for holdings calculator.

Modules:
    categories: Attribute category descriptors and the category registry
    schemas: Input frame schemas
"""

from .categories import AttributeCategory, CategoryRegistry, FieldSpec

__all__ = [
    "AttributeCategory",
    "CategoryRegistry",
    "FieldSpec",
]
