"""
capturec.core: shared types used across the front-end and stage1.

Modules:
  - span: source span attached to diagnostics
  - diagnostics: Diagnostic record, kind codes and ordering helpers
  - metadata: FieldEnumerator / SymbolResolver collaborator protocols
"""

__all__ = [
    "span",
    "diagnostics",
    "metadata",
]
