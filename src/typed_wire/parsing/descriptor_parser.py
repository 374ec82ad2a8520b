"""Parser turning type-name strings into type descriptors."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any

import ply.yacc as yacc

from typed_wire.parsing.descriptor_lexer import DescriptorLexer
from typed_wire.types import (
    SIGNATURE_KINDS,
    UNKNOWN,
    ArrayDescriptor,
    PrimitiveDescriptor,
    TypeDescriptor,
    TypeRegistry,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypeRef:
    """Reference to a named type, possibly as an array, before resolution."""

    name: str
    dimension: int = 0
    # Element written as a bare signature letter, e.g. the "I" of "[I"
    packed: bool = False
    # Element written in "[L<name>;" form
    object_signature: bool = False


class DescriptorParser:
    """Parser for type-name strings.

    Unparseable or unresolvable names never raise; they degrade to the
    unknown descriptor (or an array of it when only the element is unknown).
    """

    tokens = DescriptorLexer.tokens

    def __init__(self, registry: TypeRegistry | None = None) -> None:
        self.lexer = DescriptorLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self.registry = registry if registry is not None else TypeRegistry()
        # ply parsers and lexers keep per-parse state
        self._lock = threading.Lock()

    def p_type_name_simple(self, p: yacc.YaccProduction) -> None:
        """type_name : NAME"""
        p[0] = TypeRef(name=p[1])

    def p_type_name_suffix_array(self, p: yacc.YaccProduction) -> None:
        """type_name : type_name LBRACKET RBRACKET"""
        p[0] = replace(p[1], dimension=p[1].dimension + 1)

    def p_type_name_signature(self, p: yacc.YaccProduction) -> None:
        """type_name : signature"""
        p[0] = p[1]

    def p_signature_object(self, p: yacc.YaccProduction) -> None:
        """signature : brackets NAME SEMI"""
        p[0] = TypeRef(name=p[2], dimension=p[1], object_signature=True)

    def p_signature_packed(self, p: yacc.YaccProduction) -> None:
        """signature : brackets NAME"""
        p[0] = TypeRef(name=p[2], dimension=p[1], packed=True)

    def p_brackets_single(self, p: yacc.YaccProduction) -> None:
        """brackets : LBRACKET"""
        p[0] = 1

    def p_brackets_multiple(self, p: yacc.YaccProduction) -> None:
        """brackets : brackets LBRACKET"""
        p[0] = p[1] + 1

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse_ref(self, data: str) -> TypeRef:
        """Parse a type name into an unresolved reference.

        Raises:
            SyntaxError: if the name is not well formed.
        """
        with self._lock:
            if self.parser is None:
                self.build(debug=False, write_tables=False)
            ref = self.parser.parse(data, lexer=self.lexer.lexer)
        if ref is None:
            raise SyntaxError("Empty type name")
        return ref

    def parse(self, data: str) -> TypeDescriptor:
        """Parse a type name and resolve it against the registry."""
        # Registered shapes may carry names the grammar does not cover
        registered = self.registry.get(data.strip())
        if registered is not None:
            return registered
        try:
            ref = self.parse_ref(data)
        except SyntaxError as e:
            logger.debug("Unparseable type name %r: %s", data, e)
            return UNKNOWN
        if ref.packed and ref.name not in SIGNATURE_KINDS:
            logger.debug("Unparseable type name %r: '%s' is not a signature letter", data, ref.name)
            return UNKNOWN
        return self._resolve_type_ref(ref)

    def _resolve_element(self, ref: TypeRef) -> TypeDescriptor | None:
        if ref.packed:
            return PrimitiveDescriptor.of(SIGNATURE_KINDS[ref.name])
        if ref.object_signature and ref.name.startswith("L"):
            element = self.registry.get(ref.name[1:])
            if element is not None:
                return element
        return self.registry.get(ref.name)

    def _resolve_type_ref(self, ref: TypeRef) -> TypeDescriptor:
        element = self._resolve_element(ref)
        if ref.dimension == 0:
            if element is None:
                logger.debug("Unresolvable type name %r", ref.name)
                return UNKNOWN
            return element
        if element is None:
            logger.debug("Unresolvable array element type %r", ref.name)
            return ArrayDescriptor.of(UNKNOWN, ref.dimension)
        if isinstance(element, ArrayDescriptor):
            # Registered array shape used as an element: flatten the dimensions
            return ArrayDescriptor.of(element.element, element.dimension + ref.dimension, element.packed)
        return ArrayDescriptor.of(element, ref.dimension, packed=ref.packed)
