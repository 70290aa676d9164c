"""school-query: filtering, sorting and pagination for the school records API."""

from . import models as models  # noqa: F401
from .builder import FieldBuilder, FilterBuilder  # noqa: F401
from .config import (  # noqa: F401
    JwtConfig,
    MixedCombinatorPolicy,
    QueryConfig,
    QueryPresets,
    normalize_pagination,
)
from .exceptions import (  # noqa: F401
    InvalidClauseError,
    MixedCombinatorError,
    QueryValidationError,
    UnknownFieldError,
    ValueCoercionError,
)
from .fields import FieldRegistry, FieldSpec, FieldType  # noqa: F401
from .filters import (  # noqa: F401
    FILTER_STRATEGIES,
    FilterEngine,
    FilterParser,
    parse_filter_expression,
)
from .manager import QueryManager  # noqa: F401
from .models import (  # noqa: F401
    Combinator,
    FilterClause,
    FilterExpression,
    FilterOperator,
    PagedResult,
    QueryParams,
    SortDescriptor,
)
from .pagination import PaginationEngine, build_paged_result  # noqa: F401
from .plan import QueryPlan, build_query_plan  # noqa: F401
from .presets import CommonFilters  # noqa: F401
from .sorting import SortEngine  # noqa: F401

__all__ = [
    # Main class
    "QueryManager",
    # Plan
    "QueryPlan",
    "build_query_plan",
    # Engines
    "FilterParser",
    "FilterEngine",
    "SortEngine",
    "PaginationEngine",
    "parse_filter_expression",
    "normalize_pagination",
    "build_paged_result",
    # Strategy registry
    "FILTER_STRATEGIES",
    # Fields
    "FieldRegistry",
    "FieldSpec",
    "FieldType",
    # Builder
    "FilterBuilder",
    "FieldBuilder",
    # Configuration
    "QueryConfig",
    "QueryPresets",
    "MixedCombinatorPolicy",
    "JwtConfig",
    # Presets
    "CommonFilters",
    # Errors
    "QueryValidationError",
    "UnknownFieldError",
    "InvalidClauseError",
    "ValueCoercionError",
    "MixedCombinatorError",
    # Models
    "FilterOperator",
    "Combinator",
    "FilterClause",
    "FilterExpression",
    "SortDescriptor",
    "QueryParams",
    "PagedResult",
    # Module
    "models",
]
