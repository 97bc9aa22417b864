from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Color = Literal["green", "yellow", "orange"]

SNIPPET_CATEGORIES: tuple[str, ...] = ("ui", "company", "ship", "ret")
SNIPPET_MAX_CHARS = 140
SNIPPET_CAP = 3


@dataclass(frozen=True)
class ValidatedUrl:
    href: str
    scheme: str
    hostname: str
    port: int | None = None


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one fetch attempt. ``reason`` is set iff ``ok`` is false."""

    ok: bool
    url: str
    final_url: str
    status: int | None = None
    text: str | None = None
    reason: str | None = None
    content_type: str | None = None
    charset: str | None = None
    redirects: tuple[str, ...] = ()

    @classmethod
    def success(cls, url: str, final_url: str, status: int, text: str, **kw) -> FetchResult:
        return cls(ok=True, url=url, final_url=final_url, status=status, text=text, **kw)

    @classmethod
    def failure(cls, url: str, reason: str, *, final_url: str | None = None, status: int | None = None, **kw) -> FetchResult:
        return cls(ok=False, url=url, final_url=final_url or url, status=status, reason=reason, **kw)


@dataclass(frozen=True)
class SignalSet:
    is_japanese_ui: bool = False
    is_jpy: bool = False
    has_tokusho: bool = False
    has_address: bool = False
    has_phone: bool = False
    has_email: bool = False
    has_days_delivery: bool = False
    has_long_delivery: bool = False
    has_overseas_ship: bool = False
    has_return_info: bool = False
    has_overseas_return: bool = False

    def merge(self, other: SignalSet) -> SignalSet:
        # Field-wise OR: order of merging never changes the result.
        return replace(self, **{f.name: getattr(self, f.name) or getattr(other, f.name) for f in fields(self)})

    def as_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def is_confident(self) -> bool:
        return self.has_tokusho and self.has_address and self.has_return_info


@dataclass
class SnippetSet:
    ui: list[str] = field(default_factory=list)
    company: list[str] = field(default_factory=list)
    ship: list[str] = field(default_factory=list)
    ret: list[str] = field(default_factory=list)

    def add(self, category: str, snippet: str) -> None:
        bucket: list[str] = getattr(self, category)
        if snippet and snippet not in bucket and len(bucket) < SNIPPET_CAP:
            bucket.append(snippet)

    def merge(self, other: SnippetSet) -> None:
        for category in SNIPPET_CATEGORIES:
            for snippet in getattr(other, category):
                self.add(category, snippet)

    def as_dict(self) -> dict[str, list[str]]:
        return {c: list(getattr(self, c)) for c in SNIPPET_CATEGORIES}


@dataclass(frozen=True)
class PolicyCandidate:
    url: str
    score: int
    category: str | None
    source: Literal["anchor", "fallback"] = "anchor"


class DiagnoseRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Evidence(_CamelModel):
    domain_summary: list[str] = Field(default_factory=list, alias="domainSummary")
    platform_guess: str = Field("unknown", alias="platformGuess")
    score_summary: list[str] = Field(default_factory=list, alias="scoreSummary")
    shipment_notes: list[str] = Field(default_factory=list, alias="shipmentNotes")
    return_notes: list[str] = Field(default_factory=list, alias="returnNotes")
    urls_checked: list[str] = Field(default_factory=list, alias="urlsChecked")
    snippets: dict[str, list[str]] = Field(default_factory=lambda: {c: [] for c in SNIPPET_CATEGORIES})
    fetch_error: str | None = Field(None, alias="fetchError")


class Diagnosis(_CamelModel):
    url: str
    platform: str
    score: int = Field(..., ge=0, le=100)
    color: Color
    label_text: str = Field(..., alias="labelText")
    one_line: str = Field(..., alias="oneLine")
    delivery: str
    eta: str
    return_policy: str = Field(..., alias="returnPolicy")
    notes: list[str]
    good: list[str]
    caution: list[str]
    evidence: Evidence
