# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
capturec: capture-clause resolution and desugaring for closures.

Packages:
  core:    spans, diagnostics, type-metadata/symbol collaborator protocols
  parser:  lark front-end for closure fragments, AST and printer
  stage1:  clause parsing, free-variable collection, capture resolution,
           desugaring and the per-closure pipeline

The CLI entrypoint is `capturec.capturec:main`.
"""

__all__ = ["core", "parser", "stage1"]
