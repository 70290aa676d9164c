"""Configuration classes for school-query."""

import os
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import Any, Mapping, Optional, Tuple


class MixedCombinatorPolicy(StrEnum):
    """What to do with an expression that contains both ';' and '|'."""

    REJECT = "reject"  # raise MixedCombinatorError
    FIRST = "first"  # honor the first delimiter seen, the other stays clause text
    GROUPED = "grouped"  # OR of AND groups: "a;b|c" == (a AND b) OR c


def _to_int(value: Any) -> Optional[int]:
    """Best-effort integer conversion for raw query-string values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except (ValueError, OverflowError):
            return None


def normalize_pagination(
    page: Any,
    page_size: Any,
    max_page_size: Any = 100,
    default_page_size: int = 20,
    min_page_size: int = 1,
) -> Tuple[int, int]:
    """
    Clamp raw pagination input into safe bounds.

    Out-of-range or non-numeric values are clamped, never rejected.

    Args:
        page: Requested page number (any type)
        page_size: Requested items per page (any type)
        max_page_size: Upper bound for page_size
        default_page_size: Used when page_size is missing or not a number
        min_page_size: Lower bound for page_size

    Returns:
        Tuple[int, int]: (page, page_size) with page >= 1 and
        min_page_size <= page_size <= max_page_size
    """
    upper = max(1, _to_int(max_page_size) or 1)
    lower = min(max(1, min_page_size), upper)

    page_num = _to_int(page)
    if page_num is None or page_num < 1:
        page_num = 1

    size = _to_int(page_size)
    if size is None:
        size = default_page_size
    size = min(max(size, lower), upper)
    return page_num, size


@dataclass
class QueryConfig:
    """
    Configuration for list-query behavior.

    Attributes:
        max_page_size: Maximum allowed items per page (default: 100)
        default_page_size: Items per page when not specified (default: 20)
        default_page: Page number when not specified (default: 1)
        min_page_size: Minimum allowed items per page (default: 1)
        strict_mode: If True, reject unknown fields, malformed clauses and
            uncoercible values instead of dropping them (default: True)
        mixed_combinators: Policy for expressions mixing ';' and '|'
        compose_simple_filter: If True, AND the filterField/filterValue
            clause with the advanced filter instead of letting the advanced
            filter win (default: False)

    Example:
        config = QueryConfig(max_page_size=50, strict_mode=False)

        @app.get("/estudiantes/")
        def list_estudiantes(qm: QueryManager = Depends(QueryManager)):
            qm.apply_config(config)
            ...
    """

    # Pagination settings
    max_page_size: int = 100
    default_page_size: int = 20
    default_page: int = 1
    min_page_size: int = 1

    # Validation settings
    strict_mode: bool = True
    mixed_combinators: MixedCombinatorPolicy = MixedCombinatorPolicy.REJECT
    compose_simple_filter: bool = False

    def __post_init__(self):
        """Validate configuration values."""
        if self.max_page_size < 1:
            raise ValueError("max_page_size must be >= 1")
        if self.default_page_size < 1:
            raise ValueError("default_page_size must be >= 1")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        if self.min_page_size < 1:
            raise ValueError("min_page_size must be >= 1")
        if self.min_page_size > self.max_page_size:
            raise ValueError("min_page_size cannot exceed max_page_size")
        if self.default_page < 1:
            raise ValueError("default_page must be >= 1")
        self.mixed_combinators = MixedCombinatorPolicy(self.mixed_combinators)

    def normalize(self, page: Any, page_size: Any) -> Tuple[int, int]:
        """
        Clamp page and page size to this configuration's bounds.

        Args:
            page: Requested page number
            page_size: Requested items per page

        Returns:
            Tuple[int, int]: Normalized (page, page_size)
        """
        if _to_int(page) is None:
            page = self.default_page
        return normalize_pagination(
            page,
            page_size,
            max_page_size=self.max_page_size,
            default_page_size=self.default_page_size,
            min_page_size=self.min_page_size,
        )


class QueryPresets:
    """Pre-defined QueryConfig presets for common use cases."""

    @staticmethod
    def default() -> QueryConfig:
        """Strict configuration with the usual page sizes."""
        return QueryConfig()

    @staticmethod
    def lenient() -> QueryConfig:
        """Drop invalid clauses and unknown fields instead of failing the request."""
        return QueryConfig(strict_mode=False)

    @staticmethod
    def legacy() -> QueryConfig:
        """
        Behave like the first version of the school API.

        Invalid clauses are silently dropped and ``a;b|c`` is read as
        ``(a AND b) OR c``.
        """
        return QueryConfig(
            strict_mode=False,
            mixed_combinators=MixedCombinatorPolicy.GROUPED,
        )

    @staticmethod
    def high_volume(max_page_size: int = 500, default_page_size: int = 100) -> QueryConfig:
        """
        Configuration for export-style endpoints.

        Args:
            max_page_size: Maximum items per page
            default_page_size: Default items per page
        """
        return QueryConfig(
            max_page_size=max_page_size,
            default_page_size=default_page_size,
        )


@dataclass(frozen=True)
class JwtConfig:
    """
    JWT settings consumed by the authentication layer.

    Validated eagerly on construction so a misconfigured deployment fails at
    startup rather than on the first login.
    """

    secret_key: str
    issuer: str
    audience: str
    expiry_minutes: int = 60
    refresh_token_expiry_days: int = 7
    clock_skew_minutes: int = 5

    def __post_init__(self):
        if not self.secret_key or not self.secret_key.strip():
            raise ValueError("JWT secret_key is required")
        if len(self.secret_key) < 32:
            raise ValueError("JWT secret_key must be at least 32 characters long for HMAC SHA256")
        if not self.issuer or not self.issuer.strip():
            raise ValueError("JWT issuer is required")
        if not self.audience or not self.audience.strip():
            raise ValueError("JWT audience is required")
        if self.expiry_minutes <= 0:
            raise ValueError("JWT expiry_minutes must be greater than 0")
        if self.refresh_token_expiry_days <= 0:
            raise ValueError("JWT refresh_token_expiry_days must be greater than 0")
        if self.clock_skew_minutes < 0:
            raise ValueError("JWT clock_skew_minutes must be greater than or equal to 0")

    @classmethod
    def from_env(cls, prefix: str = "JWT_", environ: Optional[Mapping[str, str]] = None):
        """
        Build the configuration from environment variables.

        Reads ``{prefix}SECRET_KEY``, ``{prefix}ISSUER``, ``{prefix}AUDIENCE``,
        ``{prefix}EXPIRY_MINUTES``, ``{prefix}REFRESH_TOKEN_EXPIRY_DAYS`` and
        ``{prefix}CLOCK_SKEW_MINUTES``. Missing numeric settings keep their
        defaults.

        Raises:
            ValueError: If a value is missing, not a number, or out of range
        """
        env = os.environ if environ is None else environ

        def _int(name: str, default: int) -> int:
            raw = env.get(f"{prefix}{name}")
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError as e:
                raise ValueError(f"{prefix}{name} must be an integer, got '{raw}'") from e

        return cls(
            secret_key=env.get(f"{prefix}SECRET_KEY", ""),
            issuer=env.get(f"{prefix}ISSUER", ""),
            audience=env.get(f"{prefix}AUDIENCE", ""),
            expiry_minutes=_int("EXPIRY_MINUTES", 60),
            refresh_token_expiry_days=_int("REFRESH_TOKEN_EXPIRY_DAYS", 7),
            clock_skew_minutes=_int("CLOCK_SKEW_MINUTES", 5),
        )

    @property
    def expiry(self) -> timedelta:
        return timedelta(minutes=self.expiry_minutes)

    @property
    def refresh_token_expiry(self) -> timedelta:
        return timedelta(days=self.refresh_token_expiry_days)

    @property
    def clock_skew(self) -> timedelta:
        return timedelta(minutes=self.clock_skew_minutes)
