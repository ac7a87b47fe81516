"""Read-only web viewer for an organized item bank."""
from __future__ import annotations

import html
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse

from env_validation import EnvironmentError, Settings, get_env_bool, validate_environment
from hierarchy import Hierarchy, coverage_statistics
from item_bank import ItemBank, ItemBankLoadError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    try:
        validate_environment()
        yield
    except EnvironmentError as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise


app = FastAPI(title="Math Item Bank Viewer", version="1.0.0", lifespan=_lifespan)

_BANK: Optional[ItemBank] = None


def reset_bank() -> None:
    """Forget the cached bank so the next request reloads it from disk."""
    global _BANK
    _BANK = None


def get_bank() -> ItemBank:
    global _BANK
    if _BANK is None:
        settings = Settings.from_env()
        bank = ItemBank.from_json(settings.item_bank_path)
        if get_env_bool("AUTO_ASSIGN_ON_LOAD"):
            bank.auto_assign_subskills(min_score=settings.match_threshold)
        _BANK = bank
    return _BANK


def _load_bank() -> ItemBank:
    try:
        return get_bank()
    except (ItemBankLoadError, EnvironmentError) as e:
        logger.error("Could not load item bank: %s", e)
        raise HTTPException(status_code=500, detail=f"Failed to load item bank: {e}")


def _outline(hierarchy: Hierarchy) -> str:
    esc = html.escape
    parts: List[str] = []
    for grade in hierarchy.grades:
        parts.append(
            f"<li><strong>Grade {esc(grade.grade)}</strong> "
            f"({grade.total_standards} standards, {grade.total_items} items)<ul>"
        )
        for domain in grade.domains:
            parts.append(f"<li>{esc(domain.domain or 'Unassigned')}<ul>")
            for cluster in domain.clusters:
                parts.append(f"<li>{esc(cluster.cluster or 'Unassigned')}<ul>")
                for node in cluster.standards:
                    standard = node.standard
                    parts.append(
                        f"<li><code>{esc(standard.code or standard.id)}</code> "
                        f"{esc(standard.description)} "
                        f"[{node.total_subskills} subskills, {node.total_items} items, "
                        f"{node.coverage_percentage}% covered]</li>"
                    )
                parts.append("</ul></li>")
            parts.append("</ul></li>")
        parts.append("</ul></li>")
    return "<ul>" + "".join(parts) + "</ul>"


@app.get("/", response_class=HTMLResponse)
def root():
    bank = _load_bank()
    hierarchy = bank.organize()
    stats = coverage_statistics(hierarchy)
    meta = hierarchy.metadata
    body = (
        "<!doctype html><html><head><meta charset='utf-8'>"
        "<title>Math Item Bank</title></head><body>"
        "<h1>Math Item Bank</h1>"
        f"<p>{meta.total_grades} grades, {meta.total_standards} standards, "
        f"{meta.total_subskills} subskills, {meta.total_items} items. "
        f"Overall coverage: {stats.overall_coverage}%</p>"
        f"{_outline(hierarchy)}"
        "</body></html>"
    )
    return HTMLResponse(content=body)


@app.get("/api/data")
def api_data() -> Dict[str, Any]:
    hierarchy = _load_bank().organize()
    return {
        "hierarchy": hierarchy.to_dict(),
        "statistics": coverage_statistics(hierarchy).to_dict(),
    }


@app.get("/api/gaps")
def api_gaps(threshold: Optional[int] = None) -> Dict[str, Any]:
    bank = _load_bank()
    if threshold is None:
        threshold = Settings.from_env().low_coverage_threshold
    if threshold < 0:
        raise HTTPException(status_code=400, detail="threshold cannot be negative")
    gaps = bank.coverage_gaps(low_coverage_threshold=threshold)
    return {"threshold": threshold, "hasGaps": gaps.has_gaps, **gaps.to_dict()}


@app.get("/api/validation")
def api_validation() -> Dict[str, Any]:
    return _load_bank().validate_all().to_dict()


@app.get("/api/statistics")
def api_statistics() -> Dict[str, Any]:
    return _load_bank().statistics()
