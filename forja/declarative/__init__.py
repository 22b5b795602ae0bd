"""
Sistema declarativo: carga de declaraciones YAML.
"""

from forja.declarative.loader import DeclarationLoader, load_declaration

__all__ = ["DeclarationLoader", "load_declaration"]
