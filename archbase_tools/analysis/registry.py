#!/usr/bin/env python3
"""Static component knowledge and fixed classification thresholds.

Everything here is read-only lookup data. Thresholds are named constants
so tests can pin their exact boundaries; none of them is configurable.
"""

from typing import Dict, FrozenSet, Tuple

# ---------------------------------------------------------------------------
# Component registry
# ---------------------------------------------------------------------------
ARCHBASE_COMPONENTS: FrozenSet[str] = frozenset({
    "ArchbaseEdit", "ArchbaseSelect", "ArchbaseDataTable", "ArchbaseFormTemplate",
    "ArchbaseDataGrid", "ArchbaseRemoteDataSource", "ArchbaseLocalDataSource",
    "ArchbaseCheckbox", "ArchbaseRadio", "ArchbaseSwitch", "ArchbaseSlider",
    "ArchbaseTextArea", "ArchbasePasswordInput", "ArchbaseNumberInput",
    "ArchbaseDatePicker", "ArchbaseTimePicker", "ArchbaseColorPicker",
    "ArchbaseFileUpload", "ArchbaseImageUpload", "ArchbaseRichTextEditor",
    "ArchbaseCodeEditor", "ArchbaseMarkdownEditor", "ArchbaseTagInput",
    "ArchbaseAutocomplete", "ArchbaseMultiSelect", "ArchbaseTreeSelect",
    "ArchbaseAsyncSelect", "ArchbaseButton", "ArchbaseIconButton",
    "ArchbaseModal", "ArchbaseDrawer", "ArchbasePopover", "ArchbaseTooltip",
    "ArchbaseNotification", "ArchbaseAlert", "ArchbaseLoading", "ArchbaseSkeleton",
})

# Components with a DataSource V2 aware counterpart
V2_EQUIVALENT_COMPONENTS: FrozenSet[str] = frozenset({
    "ArchbaseEdit", "ArchbaseSelect", "ArchbaseTextArea", "ArchbaseDataGrid",
    "ArchbaseFormTemplate", "ArchbaseCheckbox", "ArchbaseNumberInput",
    "ArchbasePasswordInput", "ArchbaseDatePicker", "ArchbaseSwitch",
    "ArchbaseRadio", "ArchbaseAsyncSelect", "ArchbaseDataTable",
})

ARCHBASE_MODULE_MARKER = "archbase"

FORM_TEMPLATE = "ArchbaseFormTemplate"
DATA_GRID = "ArchbaseDataGrid"

# ---------------------------------------------------------------------------
# DataSource factories and method markers
# ---------------------------------------------------------------------------
V1_FACTORIES: FrozenSet[str] = frozenset({
    "ArchbaseDataSource",
    "useArchbaseDataSource",
})

V2_FACTORIES: FrozenSet[str] = frozenset({
    "ArchbaseRemoteDataSource",
    "useArchbaseRemoteDataSource",
    "ArchbaseDataSourceV2",
    "ArchbaseRemoteDataSourceV2",
    "useArchbaseDataSourceV2",
    "useArchbaseRemoteDataSourceV2",
})

V2_METHOD_MARKERS: FrozenSet[str] = frozenset({
    "appendToFieldArray",
    "updateFieldArrayItem",
    "removeFromFieldArray",
    "isDataSourceV2",
})

V1_METHOD_MARKERS: FrozenSet[str] = frozenset({"forceUpdate"})

DATA_SOURCE_PROPS = ("dataSource", "dataField")

# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------
STATE_HOOKS = frozenset({"useState", "useReducer"})
EFFECT_HOOKS = frozenset({"useEffect", "useLayoutEffect"})
MEMO_HOOKS = frozenset({"useMemo", "useCallback"})
AUTH_HOOKS = frozenset({"useAuth", "useArchbaseSecurityManager", "useArchbaseAuthenticationManager"})

# ---------------------------------------------------------------------------
# Issue tables, keyed by component name
# ---------------------------------------------------------------------------
REQUIRED_PROPS: Dict[str, Tuple[str, ...]] = {
    "ArchbaseEdit": ("dataSource", "dataField"),
    "ArchbaseSelect": ("dataSource", "dataField"),
    "ArchbaseDataGrid": ("dataSource",),
    "ArchbaseFormTemplate": ("dataSource",),
    "ArchbaseRemoteDataSource": ("url",),
    "ArchbaseButton": (),
    "ArchbaseModal": ("opened",),
}

_BOUND_INPUTS = (
    "ArchbaseEdit", "ArchbaseSelect", "ArchbaseTextArea", "ArchbaseCheckbox",
    "ArchbaseNumberInput", "ArchbasePasswordInput", "ArchbaseDatePicker",
)

# component -> {deprecated prop: replacement or None when it should go}
DEPRECATED_PROPS: Dict[str, Dict[str, object]] = {
    "ArchbaseFormTemplate": {
        "validation": "validationRules",
        "onValidationError": "onValidationFailed",
    },
    "ArchbaseDataGrid": {
        "onRowClick": "onRowSelect",
        "onCellClick": "onCellSelect",
    },
}
for _name in _BOUND_INPUTS:
    DEPRECATED_PROPS.setdefault(_name, {})["forceUpdate"] = None

# component -> {prop: better alternative}
REPLACEABLE_PROPS: Dict[str, Dict[str, str]] = {
    "ArchbaseEdit": {"value": "dataField"},
    "ArchbaseSelect": {"value": "dataField"},
    "ArchbaseTextArea": {"value": "dataField"},
    "ArchbaseCheckbox": {"checked": "dataField"},
    "ArchbaseDataGrid": {"data": "dataSource"},
}

# ---------------------------------------------------------------------------
# Scan-level pattern catalogue
# ---------------------------------------------------------------------------
PATTERN_DEFINITIONS: Dict[str, Dict[str, object]] = {
    "form-with-datasource": {
        "components": ("ArchbaseFormTemplate", "ArchbaseRemoteDataSource"),
        "description": "Form with DataSource integration",
    },
    "crud-with-datagrid": {
        "components": ("ArchbaseDataGrid", "ArchbaseRemoteDataSource"),
        "description": "CRUD interface with DataGrid",
    },
    "async-loading": {
        "components": ("ArchbaseLoading", "ArchbaseAsyncSelect"),
        "description": "Async operations with loading states",
    },
    "validation-with-feedback": {
        "components": ("ArchbaseFormTemplate", "ArchbaseAlert"),
        "description": "Form validation with user feedback",
    },
}

# ---------------------------------------------------------------------------
# Form analysis
# ---------------------------------------------------------------------------
FIELD_TYPE_BY_COMPONENT: Dict[str, str] = {
    "ArchbaseEdit": "text",
    "ArchbasePasswordInput": "password",
    "ArchbasePasswordEdit": "password",
    "ArchbaseNumberInput": "number",
    "ArchbaseNumberEdit": "number",
    "ArchbaseSelect": "select",
    "ArchbaseCheckbox": "checkbox",
    "ArchbaseDatePicker": "date",
    "ArchbaseTextArea": "textarea",
    "ArchbaseSwitch": "switch",
}

VALIDATION_LIBRARIES = ("yup", "zod")
VALIDATION_PROPS = ("validate", "validation", "validationRules", "onValidate")

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------
EFFORT_LOW_MAX = 10
EFFORT_MEDIUM_MAX = 25

SIMPLE_MAX_ISSUES = 0
SIMPLE_MAX_PROPS = 5
MEDIUM_MAX_ISSUES = 2
MEDIUM_MAX_PROPS = 10

FILE_COMPLEXITY_LOW_MAX = 5
FILE_COMPLEXITY_MEDIUM_MAX = 15
DATA_SOURCE_COMPLEXITY_WEIGHT = 2
SIDE_EFFECT_COMPLEXITY_WEIGHT = 2

FORM_FIELDS_LOW_MAX = 2
FORM_FIELDS_MEDIUM_MAX = 5

HIGH_PRIORITY_MIN_FREQUENCY = 5

FORM_PATTERN_MIN_FREQUENCY = 2
DATA_SOURCE_PATTERN_MIN_USAGE = 3
STRUCTURAL_PATTERN_MIN_FREQUENCY = 3
EXTRACTION_MIN_USAGES = 5
MAX_PATTERN_EXAMPLES = 3


def estimate_effort(count: int) -> str:
    """Banded effort estimate from an issue count."""
    if count <= EFFORT_LOW_MAX:
        return "Low"
    if count <= EFFORT_MEDIUM_MAX:
        return "Medium"
    return "High"


def migration_complexity(issue_count: int, prop_count: int) -> str:
    """Classify one migration candidate as simple, medium or complex."""
    if issue_count <= SIMPLE_MAX_ISSUES and prop_count <= SIMPLE_MAX_PROPS:
        return "simple"
    if issue_count <= MEDIUM_MAX_ISSUES and prop_count <= MEDIUM_MAX_PROPS:
        return "medium"
    return "complex"


def file_complexity(score: int) -> str:
    if score <= FILE_COMPLEXITY_LOW_MAX:
        return "low"
    if score <= FILE_COMPLEXITY_MEDIUM_MAX:
        return "medium"
    return "high"


def form_complexity(field_type_count: int) -> str:
    if field_type_count > FORM_FIELDS_MEDIUM_MAX:
        return "high"
    if field_type_count > FORM_FIELDS_LOW_MAX:
        return "medium"
    return "low"


def pattern_priority(frequency: int) -> str:
    return "high" if frequency >= HIGH_PRIORITY_MIN_FREQUENCY else "medium"


def is_archbase_module(module: str) -> bool:
    return ARCHBASE_MODULE_MARKER in module.lower()


def factory_version(name: str) -> str:
    """Return 'v1', 'v2' or '' for a DataSource factory or hook name."""
    if name in V2_FACTORIES:
        return "v2"
    if name in V1_FACTORIES:
        return "v1"
    return ""

