"""Per-language grammar tables and the closed set of syntax variants.

Tree-sitter hands back untyped nodes whose meaning depends on the grammar.
:func:`classify` turns one of those nodes into exactly one of
:class:`FunctionNode`, :class:`ClassNode`, :class:`InterfaceNode`,
:class:`ImportNode`, :class:`VariableNode` or :class:`OtherNode`, so the
extractor can dispatch with ``isinstance`` instead of probing node fields.

Everything grammar-specific (node type names, which fields bind a name,
which nodes count as branches) lives in the :class:`Grammar` tables below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

from .models import ANONYMOUS


@dataclass(frozen=True)
class Grammar:
    language: str
    # Declarations that always carry a ``name`` field.
    function_types: FrozenSet[str]
    # Function expressions named after the assignment that holds them.
    anonymous_function_types: FrozenSet[str]
    class_types: FrozenSet[str]
    interface_types: FrozenSet[str]
    import_types: FrozenSet[str]
    variable_types: FrozenSet[str]
    branch_types: FrozenSet[str]
    logical_type: str
    logical_operators: FrozenSet[str]
    call_type: str
    member_types: Dict[str, str]
    identifier_types: FrozenSet[str]
    # parent type -> field, for parents that lend their name to an anonymous function
    naming_parents: Dict[str, str]
    # (parent type, field) pairs whose identifier is a binding, not a reference
    binding_fields: Dict[str, Tuple[str, ...]]
    # parent types whose identifier children are all bindings
    binding_parents: FrozenSet[str]
    # Scopes a variable chunk may live in; empty means anywhere.
    variable_scopes: FrozenSet[str] = frozenset()


_JS_BINDING_FIELDS: Dict[str, Tuple[str, ...]] = {
    "function_declaration": ("name",),
    "generator_function_declaration": ("name",),
    "function_expression": ("name",),
    "generator_function": ("name",),
    "class_declaration": ("name",),
    "class": ("name",),
    "abstract_class_declaration": ("name",),
    "variable_declarator": ("name",),
    "arrow_function": ("parameter",),
    "catch_clause": ("parameter",),
    "for_in_statement": ("left",),
    "assignment_pattern": ("left",),
    "pair_pattern": ("value",),
    "required_parameter": ("pattern",),
    "optional_parameter": ("pattern",),
    "labeled_statement": ("label",),
    "break_statement": ("label",),
    "continue_statement": ("label",),
}

_JS_BINDING_PARENTS = frozenset({
    "formal_parameters", "array_pattern", "rest_pattern", "object_pattern",
    "import_clause", "namespace_import", "import_specifier",
})

JAVASCRIPT = Grammar(
    language="javascript",
    function_types=frozenset({"function_declaration", "generator_function_declaration"}),
    anonymous_function_types=frozenset({
        "function_expression", "generator_function", "arrow_function",
    }),
    class_types=frozenset({"class_declaration"}),
    interface_types=frozenset(),
    import_types=frozenset({"import_statement"}),
    variable_types=frozenset({"lexical_declaration", "variable_declaration"}),
    branch_types=frozenset({
        "if_statement", "while_statement", "do_statement", "for_statement",
        "for_in_statement", "switch_case", "catch_clause", "ternary_expression",
    }),
    logical_type="binary_expression",
    logical_operators=frozenset({"&&", "||"}),
    call_type="call_expression",
    member_types={"member_expression": "property"},
    identifier_types=frozenset({"identifier", "shorthand_property_identifier"}),
    naming_parents={"variable_declarator": "name", "assignment_expression": "left"},
    binding_fields=_JS_BINDING_FIELDS,
    binding_parents=_JS_BINDING_PARENTS,
)

TYPESCRIPT = Grammar(
    language="typescript",
    function_types=JAVASCRIPT.function_types,
    anonymous_function_types=JAVASCRIPT.anonymous_function_types,
    class_types=frozenset({"class_declaration", "abstract_class_declaration"}),
    interface_types=frozenset({"interface_declaration"}),
    import_types=JAVASCRIPT.import_types,
    variable_types=JAVASCRIPT.variable_types,
    branch_types=JAVASCRIPT.branch_types,
    logical_type=JAVASCRIPT.logical_type,
    logical_operators=JAVASCRIPT.logical_operators,
    call_type=JAVASCRIPT.call_type,
    member_types=JAVASCRIPT.member_types,
    identifier_types=JAVASCRIPT.identifier_types,
    naming_parents=JAVASCRIPT.naming_parents,
    binding_fields=_JS_BINDING_FIELDS,
    binding_parents=_JS_BINDING_PARENTS,
)

PYTHON = Grammar(
    language="python",
    function_types=frozenset({"function_definition"}),
    anonymous_function_types=frozenset({"lambda"}),
    class_types=frozenset({"class_definition"}),
    interface_types=frozenset(),
    import_types=frozenset({"import_statement", "import_from_statement"}),
    variable_types=frozenset({"assignment"}),
    branch_types=frozenset({
        "if_statement", "elif_clause", "while_statement", "for_statement",
        "except_clause", "case_clause", "conditional_expression",
    }),
    logical_type="boolean_operator",
    logical_operators=frozenset({"and", "or"}),
    call_type="call",
    member_types={"attribute": "attribute"},
    identifier_types=frozenset({"identifier"}),
    naming_parents={"assignment": "left"},
    binding_fields={
        "function_definition": ("name",),
        "class_definition": ("name",),
        "assignment": ("left",),
        "for_statement": ("left",),
        "for_in_clause": ("left",),
        "keyword_argument": ("name",),
        "attribute": ("attribute",),
        "default_parameter": ("name",),
        "typed_default_parameter": ("name",),
        "aliased_import": ("alias",),
        "named_expression": ("name",),
    },
    binding_parents=frozenset({
        "parameters", "lambda_parameters", "typed_parameter",
        "list_splat_pattern", "dictionary_splat_pattern", "dotted_name",
        "pattern_list", "tuple_pattern", "list_pattern", "as_pattern_target",
        "global_statement", "nonlocal_statement",
    }),
    variable_scopes=frozenset({"module", "class_definition"}),
)

GRAMMARS: Dict[str, Grammar] = {
    "javascript": JAVASCRIPT,
    "typescript": TYPESCRIPT,
    "tsx": TYPESCRIPT,
    "python": PYTHON,
}


# ===================================================================
# Variants
# ===================================================================

@dataclass(frozen=True)
class FunctionNode:
    node: Any
    name: str


@dataclass(frozen=True)
class ClassNode:
    node: Any
    name: str


@dataclass(frozen=True)
class InterfaceNode:
    node: Any
    name: str


@dataclass(frozen=True)
class ImportNode:
    node: Any
    modules: Tuple[str, ...]

    @property
    def name(self) -> str:
        return ", ".join(self.modules) if self.modules else "unknown"


@dataclass(frozen=True)
class VariableNode:
    node: Any
    names: Tuple[str, ...]


@dataclass(frozen=True)
class OtherNode:
    node: Any


SyntaxNode = Union[FunctionNode, ClassNode, InterfaceNode, ImportNode, VariableNode, OtherNode]


def node_text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace")


def node_line(node: Any) -> int:
    """1-based line of the first character of *node*."""
    return node.start_point[0] + 1


def classify(node: Any, grammar: Grammar) -> SyntaxNode:
    """Map a raw Tree-sitter node onto the closed variant set.

    Anonymous tokens share their type name with some named nodes (the
    ``function`` and ``lambda`` keywords), so only named nodes are classified.
    """
    if not node.is_named:
        return OtherNode(node)
    kind = node.type

    if kind in grammar.function_types:
        name = node.child_by_field_name("name")
        if name is None:
            return OtherNode(node)
        return FunctionNode(node, node_text(name))

    if kind in grammar.anonymous_function_types:
        return FunctionNode(node, _expression_name(node, grammar))

    if kind in grammar.class_types or kind in grammar.interface_types:
        name = node.child_by_field_name("name")
        if name is None:
            return OtherNode(node)
        if kind in grammar.interface_types:
            return InterfaceNode(node, node_text(name))
        return ClassNode(node, node_text(name))

    if kind in grammar.import_types:
        return ImportNode(node, _import_modules(node))

    if kind in grammar.variable_types:
        if grammar.variable_scopes and not _in_scope(node, grammar.variable_scopes):
            return OtherNode(node)
        names = _declared_names(node, grammar)
        if not names:
            return OtherNode(node)
        return VariableNode(node, names)

    return OtherNode(node)


def is_reference(node: Any, grammar: Grammar) -> bool:
    """True when *node* is an identifier that reads a name rather than binds one."""
    if node.type not in grammar.identifier_types:
        return False
    parent = node.parent
    if parent is None:
        return True
    if parent.type in grammar.binding_parents:
        return False
    for field_name in grammar.binding_fields.get(parent.type, ()):
        if any(child == node for child in parent.children_by_field_name(field_name)):
            return False
    return True


def callee_name(call: Any, grammar: Grammar) -> Optional[str]:
    """Name a call targets: the identifier, or the member's property name."""
    func = call.child_by_field_name("function")
    if func is None:
        return None
    if func.type in grammar.identifier_types:
        return node_text(func)
    field_name = grammar.member_types.get(func.type)
    if field_name:
        prop = func.child_by_field_name(field_name)
        if prop is not None:
            return node_text(prop)
    return None


def is_logical(node: Any, grammar: Grammar) -> bool:
    if node.type != grammar.logical_type:
        return False
    operator = node.child_by_field_name("operator")
    return operator is not None and operator.type in grammar.logical_operators


# ===================================================================
# Helpers
# ===================================================================

def _expression_name(node: Any, grammar: Grammar) -> str:
    own = node.child_by_field_name("name")
    if own is not None:
        return node_text(own)
    parent = node.parent
    if parent is None:
        return ANONYMOUS
    field_name = grammar.naming_parents.get(parent.type)
    if field_name is None:
        return ANONYMOUS
    target = parent.child_by_field_name(field_name)
    if target is not None and target.type in grammar.identifier_types:
        return node_text(target)
    return ANONYMOUS


def _import_modules(node: Any) -> Tuple[str, ...]:
    source = node.child_by_field_name("source")
    if source is not None:
        return (node_text(source).strip("'\"`"),)

    module = node.child_by_field_name("module_name")
    if module is not None:
        return (node_text(module),)

    modules = []
    for name in node.children_by_field_name("name"):
        if name.type == "aliased_import":
            inner = name.child_by_field_name("name")
            if inner is not None:
                name = inner
        modules.append(node_text(name))
    return tuple(modules)


def _in_scope(node: Any, scopes: FrozenSet[str]) -> bool:
    statement = node.parent
    if statement is None or statement.type != "expression_statement":
        return False
    scope = statement.parent
    if scope is not None and scope.type == "block":
        scope = scope.parent
    return scope is not None and scope.type in scopes


def _declared_names(node: Any, grammar: Grammar) -> Tuple[str, ...]:
    # JS: one declarator per name; Python: the assignment's left side.
    names = []
    for child in node.named_children:
        if child.type != "variable_declarator":
            continue
        target = child.child_by_field_name("name")
        if target is not None and target.type in grammar.identifier_types:
            names.append(node_text(target))

    left = node.child_by_field_name("left")
    if left is not None:
        if left.type in grammar.identifier_types:
            names.append(node_text(left))
        elif left.type in grammar.binding_parents:
            names.extend(
                node_text(ch) for ch in left.named_children
                if ch.type in grammar.identifier_types
            )
    return tuple(names)
