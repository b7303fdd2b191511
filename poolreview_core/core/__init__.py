from .changes import (
    ChangeEntry,
    ChangeKind,
    ChangeResolution,
    ChangedItem,
    PathRow,
    resolve_changes,
)
from .closure import ClosureNode, ClosureResult, compute_closure, find_orphans, select_roots
from .config import ReviewConfig, load_config
from .errors import (
    ConfigError,
    CyclicDerivation,
    DocumentError,
    PoolReviewError,
    RenderError,
    RepositoryError,
    StoreError,
)
from .inheritance import (
    DerivedNode,
    ResolvedAttribute,
    ResolvedPart,
    derivation_chain,
    derived_parts_tree,
    resolve_part,
)
from .natural_order import natural_compare, natural_key, natural_sorted
from .records import (
    NIL_UUID,
    PART_ATTRIBUTE_LABELS,
    PIN_DIRECTION_NAMES,
    RECORD_TYPE_INFO,
    DependencyEdge,
    DependencyGraph,
    PadMapItem,
    Part,
    PartAttribute,
    PinDirection,
    Record,
    RecordRef,
    RecordType,
    RecordTypeInfo,
    pin_direction_name,
)

__all__ = [
    "ChangeEntry",
    "ChangeKind",
    "ChangeResolution",
    "ChangedItem",
    "ClosureNode",
    "ClosureResult",
    "ConfigError",
    "CyclicDerivation",
    "DocumentError",
    "DependencyEdge",
    "DependencyGraph",
    "DerivedNode",
    "NIL_UUID",
    "PART_ATTRIBUTE_LABELS",
    "PIN_DIRECTION_NAMES",
    "PadMapItem",
    "Part",
    "PartAttribute",
    "PathRow",
    "PinDirection",
    "PoolReviewError",
    "RECORD_TYPE_INFO",
    "Record",
    "RecordRef",
    "RecordType",
    "RecordTypeInfo",
    "RenderError",
    "RepositoryError",
    "ResolvedAttribute",
    "ResolvedPart",
    "ReviewConfig",
    "StoreError",
    "compute_closure",
    "derivation_chain",
    "derived_parts_tree",
    "find_orphans",
    "load_config",
    "natural_compare",
    "natural_key",
    "natural_sorted",
    "pin_direction_name",
    "resolve_changes",
    "resolve_part",
    "select_roots",
]
