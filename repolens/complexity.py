"""Decision-point counting over tree-sitter JS/TS syntax trees.

The score is a breakdown of branching constructs, not McCabe's number:
a straight-line function scores 0.
"""

from __future__ import annotations

from typing import Any

from .models import ComplexityBreakdown

LOOP_TYPES = {"for_statement", "for_in_statement", "for_of_statement", "while_statement", "do_statement"}
LOGICAL_OPERATORS = {"&&", "||"}


def tally(node: Any, breakdown: ComplexityBreakdown) -> None:
    """Add *node*'s own contribution (not its children's) to *breakdown*."""
    kind = node.type
    if kind == "if_statement":
        breakdown.if_statements += 1
    elif kind in LOOP_TYPES:
        breakdown.loops += 1
    elif kind == "switch_case":
        # switch_default has its own node type, so every switch_case has a test
        breakdown.switch_cases += 1
    elif kind == "ternary_expression":
        breakdown.ternaries += 1
    elif kind == "binary_expression":
        operator = node.child_by_field_name("operator")
        if operator is not None and operator.type in LOGICAL_OPERATORS:
            breakdown.logical_expressions += 1
    elif kind == "catch_clause":
        breakdown.catch_clauses += 1


def compute_breakdown(node: Any) -> ComplexityBreakdown:
    """Count decision points in the whole subtree rooted at *node*."""
    breakdown = ComplexityBreakdown()
    stack = [node]
    while stack:
        current = stack.pop()
        tally(current, breakdown)
        stack.extend(current.children)
    return breakdown
