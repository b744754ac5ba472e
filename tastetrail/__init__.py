"""TasteTrail - recipe sharing backend.

The API covers:
- Account registration / login (JWT bearer tokens)
- Role-gated admin CRUD over recipes and categories
- Read access to user profile / role data

Core concepts:
- A token proves *who* the caller is; the stored role decides *what* they may do.
- Recipes and categories are schemaless JSON documents owned by the storage layer.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
