# catalog_sync/models.py
# Data passed between the sync stages. Everything here is built fresh per run
# and thrown away afterwards; Woo is the only durable state.
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

SAMPLE_LIMIT = 5

PlanAction = Literal["create", "update", "noop"]
RoundMode = Literal["nearest", "up", "down", "none"]


# ---- Category tree ----

class SourceNode(BaseModel):
    """A Britpart category as returned by getcategories."""
    id: int = Field(..., gt=0)
    title: Optional[str] = None
    child_ids: List[int] = Field(default_factory=list)

    @property
    def display_title(self) -> str:
        t = (self.title or "").strip()
        return t or f"Category {self.id}"


class CollectedNode(BaseModel):
    source_id: int
    title: str
    parent_source_id: Optional[int] = None
    depth: int = 0


class PlanItem(BaseModel):
    source_id: int
    slug: str
    name: str
    parent_source_id: Optional[int] = None
    parent_target_id: Optional[int] = None
    action: PlanAction
    target_id: Optional[int] = None
    # what Woo holds right now (None for creates)
    current_name: Optional[str] = None
    current_parent_id: Optional[int] = None
    warning: Optional[str] = None
    parent_fallback: bool = False


# ---- Price feed ----

class PriceRow(BaseModel):
    sku: str
    source_amount: Optional[float] = Field(None, ge=0)
    target_amount: Optional[float] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    matched_rule: Optional[str] = None
    line: Optional[int] = None

    @field_validator("sku")
    @classmethod
    def _sku_not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("sku must not be empty")
        return v

    @model_validator(mode="after")
    def _one_amount(self) -> "PriceRow":
        if (self.source_amount is None) == (self.target_amount is None):
            raise ValueError("exactly one of source_amount / target_amount is required")
        return self


class RejectedRow(BaseModel):
    reason: Literal["missing sku", "invalid price"]
    line: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class PricingConfig(BaseModel):
    fx_rate: float = Field(..., gt=0)
    markup_pct: float = Field(0.0, ge=0)
    rounding_step: float = Field(1.0, ge=0)
    rounding_mode: RoundMode = "nearest"

    @field_validator("rounding_mode", mode="before")
    @classmethod
    def _mode_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "near":
                return "nearest"
        if v is None or v == "":
            return "none"
        return v


# ---- Results ----

def _empty_samples() -> Dict[str, List[Dict[str, Any]]]:
    return {k: [] for k in ("created", "updated", "skipped", "not_found", "failed", "warnings")}


class ReconciliationResult(BaseModel):
    """
    Same shape for dry-run and live runs; only `dry_run` tells them apart.
    Callers must read the counters (not just `ok`) to detect partial failure.
    """
    ok: bool = True
    kind: Literal["categories", "prices", "products"]
    dry_run: bool = False
    total: int = 0
    attempted: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    not_found: int = 0
    failed: int = 0
    warnings: int = 0
    cancelled: bool = False
    samples: Dict[str, List[Dict[str, Any]]] = Field(default_factory=_empty_samples)

    # category runs
    mapping: List[Dict[str, Optional[int]]] = Field(default_factory=list)
    fallbacks: List[int] = Field(default_factory=list)

    # price runs
    processed: int = 0
    range: Optional[Dict[str, int]] = None
    next_offset: Optional[int] = None
    publish: Optional[bool] = None
    pricing: Optional[Dict[str, Any]] = None
    detect: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> int:
        return self.created + self.updated + self.skipped

    def add_sample(self, bucket: str, entry: Dict[str, Any]) -> None:
        lst = self.samples.setdefault(bucket, [])
        if len(lst) < SAMPLE_LIMIT:
            lst.append(entry)

    def to_dict(self) -> Dict[str, Any]:
        out = self.model_dump()
        out["succeeded"] = self.succeeded
        return out
