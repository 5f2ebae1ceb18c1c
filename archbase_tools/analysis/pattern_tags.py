#!/usr/bin/env python3
"""Pattern tag predicates for component usages.

Each tag is an independent boolean predicate over a UsageContext. Tags are
registered as an ordered list of (name, predicate) pairs; a usage receives
every tag whose predicate holds, in list order. New tags are added by
appending to DEFAULT_TAG_PREDICATES or by passing another list to
ComponentFactExtractor.

Usage:
    from archbase_tools.analysis.pattern_tags import DEFAULT_TAG_PREDICATES, tag_usage

    tags = tag_usage(ctx, DEFAULT_TAG_PREDICATES)
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from tree_sitter import Node

from archbase_tools.analysis import registry

# Callee names treated as component wrappers, with their React.* forms
WRAPPER_NAMES = {"memo": "memo", "forwardRef": "forwardRef"}

VALIDATION_FEEDBACK_PROPS = frozenset({
    "onValidationError",
    "onValidationFailed",
    "onError",
    "validationRules",
    "validate",
    "validator",
})

_NAMED_VALUE_TYPES = ("identifier", "member_expression")


@dataclass
class UsageContext:
    """What a tag predicate may look at for one call site.

    Attributes:
        name: canonical component name.
        prop_values: prop name -> value expression node (None for bare props).
        scope_hooks: hook names called in the outermost enclosing function.
        wrappers: wrapper calls applied to that function (memo, forwardRef).
        file_identifiers: every identifier referenced in the file.
    """

    name: str
    prop_values: Dict[str, Optional[Node]] = field(default_factory=dict)
    scope_hooks: FrozenSet[str] = frozenset()
    wrappers: FrozenSet[str] = frozenset()
    file_identifiers: FrozenSet[str] = frozenset()

    def has_prop(self, prop: str) -> bool:
        return prop in self.prop_values


TagPredicate = Callable[[UsageContext], bool]


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------
def is_stateful(ctx: UsageContext) -> bool:
    return bool(ctx.scope_hooks & registry.STATE_HOOKS)


def has_effects(ctx: UsageContext) -> bool:
    return bool(ctx.scope_hooks & registry.EFFECT_HOOKS)


def is_memoized(ctx: UsageContext) -> bool:
    return "memo" in ctx.wrappers or bool(ctx.scope_hooks & registry.MEMO_HOOKS)


def has_ref(ctx: UsageContext) -> bool:
    return ctx.has_prop("ref") or "forwardRef" in ctx.wrappers


def is_form_with_datasource(ctx: UsageContext) -> bool:
    return ctx.name == registry.FORM_TEMPLATE and ctx.has_prop("dataSource")


def is_crud_with_datagrid(ctx: UsageContext) -> bool:
    return ctx.name == registry.DATA_GRID and "ArchbaseRemoteDataSource" in ctx.file_identifiers


def is_async_loading(ctx: UsageContext) -> bool:
    return "Async" in ctx.name or ctx.has_prop("loading")


def has_validation_feedback(ctx: UsageContext) -> bool:
    """A validation or error prop receives a named handler, not an inline one."""
    for prop in VALIDATION_FEEDBACK_PROPS:
        node = ctx.prop_values.get(prop)
        if node is not None and node.type in _NAMED_VALUE_TYPES:
            return True
    return False


DEFAULT_TAG_PREDICATES: Tuple[Tuple[str, TagPredicate], ...] = (
    ("stateful", is_stateful),
    ("with-effects", has_effects),
    ("memoized", is_memoized),
    ("with-ref", has_ref),
    ("form-with-datasource", is_form_with_datasource),
    ("crud-with-datagrid", is_crud_with_datagrid),
    ("async-loading", is_async_loading),
    ("validation-with-feedback", has_validation_feedback),
)


def tag_usage(ctx: UsageContext, predicates: Sequence[Tuple[str, TagPredicate]]) -> List[str]:
    """Return the names of all predicates that hold for *ctx*, in list order."""
    return [name for name, predicate in predicates if predicate(ctx)]
