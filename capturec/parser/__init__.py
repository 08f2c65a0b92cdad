# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Fragment front-end: lark grammar, expression tree and printer.

Stands in for the host toolchain's parser so the capture passes can be driven
from text (command line and tests).
"""

from .ast import Closure, Expr, Unit
from .parser import FragmentSyntaxError, parse_clause_tree, parse_expr, parse_unit
from .printer import format_expr

__all__ = [
	"Closure",
	"Expr",
	"FragmentSyntaxError",
	"Unit",
	"format_expr",
	"parse_clause_tree",
	"parse_expr",
	"parse_unit",
]
