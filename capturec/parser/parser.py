# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import codecs
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from .ast import (
	AssignStmt,
	Attr,
	Binary,
	Block,
	Borrow,
	Call,
	Closure,
	Decl,
	Expr,
	ExprStmt,
	FnDecl,
	If,
	ImplDecl,
	LetStmt,
	Literal,
	Located,
	MethodCall,
	Name,
	Param,
	Stmt,
	StructDecl,
	TypeName,
	Unary,
	Unit,
	VarDecl,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start=["unit", "clause", "expr"],
	propagate_positions=True,
	maybe_placeholders=False,
)


class FragmentSyntaxError(ValueError):
	"""
	User-facing parse error for fragments and clause text.

	Carries a best-effort location (`loc`, relative to the parsed text) so
	callers can convert it into a structured diagnostic instead of crashing.
	"""

	def __init__(self, message: str, *, loc: Optional[Located]) -> None:
		super().__init__(message)
		self.loc = loc


def _describe_lark_error(err: UnexpectedInput) -> tuple[str, Optional[Located]]:
	line = getattr(err, "line", None)
	column = getattr(err, "column", None)
	loc = Located(line=line, column=column) if isinstance(line, int) and line > 0 else None
	if isinstance(err, UnexpectedToken):
		tok = err.token
		if tok.type == "$END":
			return "unexpected end of input", loc
		return f"unexpected {tok.value!r}", loc
	if isinstance(err, UnexpectedCharacters):
		return f"unexpected character {err.char!r}", loc
	if isinstance(err, UnexpectedEOF):
		return "unexpected end of input", loc
	return str(err).splitlines()[0], loc


def _parse(source: str, start: str) -> Tree:
	try:
		return _PARSER.parse(source, start=start)
	except UnexpectedInput as err:
		message, loc = _describe_lark_error(err)
		raise FragmentSyntaxError(message, loc=loc) from err


def parse_unit(source: str) -> Unit:
	"""Parse a fragment (declarations + closure items)."""
	return _build_unit(_parse(source, "unit"))


def parse_expr(source: str) -> Expr:
	"""Parse a single expression."""
	return build_expr(_parse(source, "expr"))


def parse_clause_tree(text: str) -> Tree:
	"""
	Parse the text of one capture clause (brackets included) into a raw tree.

	Building the clause model is left to `capturec.stage1.clause_parser`,
	which owns clause validation.
	"""
	return _parse(text, "clause")


def _loc(tree: Tree) -> Optional[Located]:
	meta = tree.meta
	if getattr(meta, "empty", True):
		return None
	return Located(line=meta.line, column=meta.column)


def _loc_from_token(token: Token) -> Located:
	return Located(line=token.line, column=token.column)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


def _decode_string_token(tok: Token) -> str:
	"""
	Decode STRING tokens. Python-style escapes are interpreted first
	(unicode_escape), then the resulting code points are reinterpreted as raw
	bytes (latin-1) and decoded as UTF-8 so non-ASCII source text survives.
	"""
	content = tok.value[1:-1]  # strip quotes
	unescaped = codecs.decode(content, "unicode_escape")
	raw_bytes = unescaped.encode("latin-1")
	return raw_bytes.decode("utf-8")



def _build_unit(tree: Tree) -> Unit:
	decls: List[Decl] = []
	items: List[Expr] = []
	for child in tree.children:
		if not isinstance(child, Tree):
			continue
		kind = _name(child)
		if kind == "struct_decl":
			decls.append(_build_struct_decl(child))
		elif kind == "impl_decl":
			decls.append(ImplDecl(loc=_loc(child), type_name=child.children[0].value))
		elif kind == "fn_decl":
			decls.append(FnDecl(loc=_loc(child), name=child.children[0].value))
		elif kind == "var_decl":
			name_tok, type_node = child.children
			decls.append(VarDecl(loc=_loc(child), name=name_tok.value, type_name=_build_type_name(type_node)))
		else:
			items.append(build_expr(child))
	return Unit(decls=decls, items=items)


def _build_struct_decl(tree: Tree) -> StructDecl:
	name_tok = tree.children[0]
	fields: list[tuple[str, TypeName]] = []
	for child in tree.children[1:]:
		if isinstance(child, Tree) and _name(child) == "field_decl":
			fname, ftype = child.children
			fields.append((fname.value, _build_type_name(ftype)))
	return StructDecl(loc=_loc(tree), name=name_tok.value, fields=fields)


def _build_type_name(tree: Tree) -> TypeName:
	name_tok = tree.children[0]
	args = [_build_type_name(c) for c in tree.children[1:] if isinstance(c, Tree)]
	return TypeName(name=name_tok.value, args=args)


def build_expr(node: Tree | Token) -> Expr:
	if not isinstance(node, Tree):
		raise TypeError(f"Unexpected node type: {type(node)}")
	name = _name(node)
	loc = _loc(node)
	children = node.children

	if name == "name":
		return Name(loc=loc, ident=children[0].value)
	if name == "int_lit":
		return Literal(loc=loc, value=int(children[0].value))
	if name == "str_lit":
		return Literal(loc=loc, value=_decode_string_token(children[0]))
	if name == "true_lit":
		return Literal(loc=loc, value=True)
	if name == "false_lit":
		return Literal(loc=loc, value=False)
	if name == "attr":
		return Attr(loc=loc, value=build_expr(children[0]), attr=children[1].value)
	if name == "call":
		func_node = children[0]
		args = [build_expr(c) for c in children[1:]]
		# `a.m(x)` arrives as call(attr(a, m), x); the method name is not a field.
		if isinstance(func_node, Tree) and _name(func_node) == "attr":
			return MethodCall(
				loc=loc,
				receiver=build_expr(func_node.children[0]),
				method=func_node.children[1].value,
				args=args,
			)
		return Call(loc=loc, func=build_expr(func_node), args=args)
	if name == "binary":
		left, op, right = children
		return Binary(loc=loc, op=op.value, left=build_expr(left), right=build_expr(right))
	if name == "neg":
		return Unary(loc=loc, op="-", operand=build_expr(children[0]))
	if name == "not_":
		return Unary(loc=loc, op="!", operand=build_expr(children[0]))
	if name == "deref":
		return Unary(loc=loc, op="*", operand=build_expr(children[0]))
	if name == "borrow":
		mutable = any(isinstance(c, Token) and c.type == "MUT" for c in children)
		operand = next(c for c in children if isinstance(c, Tree))
		return Borrow(loc=loc, value=build_expr(operand), mutable=mutable)
	if name == "block":
		return _build_block(node)
	if name == "if_expr":
		return _build_if(node)
	if name == "closure":
		return _build_closure(node)
	raise TypeError(f"Unsupported expression node: {name}")


def _build_block(tree: Tree) -> Block:
	statements: List[Stmt] = []
	tail: Optional[Expr] = None
	for child in tree.children:
		if not isinstance(child, Tree):
			continue
		kind = _name(child)
		if kind == "let_stmt":
			statements.append(_build_let(child))
		elif kind == "assign_stmt":
			target, op, value = child.children
			statements.append(AssignStmt(loc=_loc(child), target=build_expr(target), op=op.value, value=build_expr(value)))
		elif kind == "expr_stmt":
			statements.append(ExprStmt(loc=_loc(child), value=build_expr(child.children[0])))
		else:
			tail = build_expr(child)
	return Block(loc=_loc(tree), statements=statements, tail=tail)


def _build_let(tree: Tree) -> LetStmt:
	mutable = False
	name_tok: Optional[Token] = None
	type_name: Optional[TypeName] = None
	for child in tree.children[:-1]:
		if isinstance(child, Token) and child.type == "MUT":
			mutable = True
		elif isinstance(child, Token) and child.type == "NAME":
			name_tok = child
		elif isinstance(child, Tree) and _name(child) == "type_name":
			type_name = _build_type_name(child)
	if name_tok is None:
		raise TypeError("let statement missing binding name")
	return LetStmt(
		loc=_loc(tree),
		name=name_tok.value,
		value=build_expr(tree.children[-1]),
		mutable=mutable,
		type_name=type_name,
	)


def _build_if(tree: Tree) -> If:
	cond, then_node, *rest = tree.children
	else_branch = build_expr(rest[0]) if rest else None
	return If(loc=_loc(tree), condition=build_expr(cond), then_block=_build_block(then_node), else_branch=else_branch)


def _build_closure(tree: Tree) -> Closure:
	clause_text: Optional[str] = None
	clause_loc: Optional[Located] = None
	is_move = False
	params: List[Param] = []
	body: Optional[Expr] = None
	for child in tree.children:
		if isinstance(child, Token) and child.type == "CLAUSE":
			clause_text = child.value
			clause_loc = _loc_from_token(child)
		elif isinstance(child, Token) and child.type == "MOVE":
			is_move = True
		elif isinstance(child, Tree) and _name(child) == "closure_params":
			for param_node in child.children:
				if isinstance(param_node, Tree) and _name(param_node) == "param":
					name_tok = param_node.children[0]
					type_node = next((c for c in param_node.children[1:] if isinstance(c, Tree)), None)
					params.append(
						Param(
							name=name_tok.value,
							type_name=_build_type_name(type_node) if type_node is not None else None,
						)
					)
		elif isinstance(child, Tree):
			body = build_expr(child)
	if body is None:
		raise TypeError("closure missing body")
	loc = _loc_from_token(tree.children[0]) if isinstance(tree.children[0], Token) else _loc(tree)
	return Closure(
		loc=loc,
		params=params,
		body=body,
		is_move=is_move,
		clause_text=clause_text,
		clause_loc=clause_loc,
	)


__all__ = ["FragmentSyntaxError", "build_expr", "parse_clause_tree", "parse_expr", "parse_unit"]
