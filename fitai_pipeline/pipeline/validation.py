# fitai_pipeline/pipeline/validation.py
"""
Validation & repair of generated plans against the reference catalog.

Every catalog reference in a raw plan is resolved in three tiers:

1. In the allowed set: VALID, unchanged.
2. In the catalog but outside the allowed set: replaced by the closest
   allowed item (semantic + category overlap, then category only, then the
   first allowed item). REPLACED, reported as a warning.
3. Not in the catalog at all (hallucinated): best-effort recovery from the
   name the model gave the entry (distinctive name tokens, then name
   similarity). The fabricated ID itself is never used as a hint, so an
   entry without a name stays unresolved.
   REPLACED_FROM_HALLUCINATION or UNRESOLVED, always reported as an error.

Unresolved references, or too many hallucinated ones, fail the attempt with
HallucinationError. A resolved item without a demonstration asset fails it
with CatalogIntegrityError. Nothing fabricated is ever returned as valid.

Meal plans with a calorie target then have their portions scaled toward it.
"""

import copy
import difflib
import logging
import re
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from fitai_pipeline.catalog.models import Catalog, CatalogItem
from fitai_pipeline.errors import CatalogIntegrityError, HallucinationError
from fitai_pipeline.models.jobs import JobKind

from .kinds import KindSpec

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[^a-z]+")
_QUANTITY = re.compile(r"^\s*(\d+(?:\.\d+)?)(.*)$", re.DOTALL)

# Relative calorie drift left alone rather than rescaled
_SCALE_DEADBAND = 0.02

# Words too common across a catalog to identify an item on their own
_GENERIC_TOKENS = frozenset(
    {
        "and", "the", "with", "for", "style", "variation",
        "food", "meal", "dish", "serving", "exercise", "workout",
        "body", "weight", "whole", "high", "low",
    }
)


class ItemStatus(str, Enum):
    VALID = "valid"
    REPLACED = "replaced"
    REPLACED_FROM_HALLUCINATION = "replaced_from_hallucination"
    UNRESOLVED = "unresolved"


class ItemResult(BaseModel):
    """Resolution of one reference occurrence."""

    path: str
    original_id: str
    final_id: str | None
    status: ItemStatus
    reason: str | None = None


class ValidationReport(BaseModel):
    """Per-attempt outcome of validation; attached to result metadata on success."""

    item_results: list[ItemResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    total_references: int = 0
    valid_count: int = 0
    replaced_count: int = 0
    hallucinated_count: int = 0
    unresolved_count: int = 0
    hallucination_ratio: float = 0.0
    calories_before_scaling: int | None = None
    calorie_scale_factor: float | None = None

    @property
    def unresolved_ids(self) -> list[str]:
        return [r.original_id for r in self.item_results if r.status == ItemStatus.UNRESOLVED]

    def summarize(self) -> None:
        statuses = [r.status for r in self.item_results]
        self.total_references = len(statuses)
        self.valid_count = statuses.count(ItemStatus.VALID)
        self.replaced_count = statuses.count(ItemStatus.REPLACED)
        self.unresolved_count = statuses.count(ItemStatus.UNRESOLVED)
        self.hallucinated_count = (
            statuses.count(ItemStatus.REPLACED_FROM_HALLUCINATION) + self.unresolved_count
        )
        self.hallucination_ratio = (
            self.hallucinated_count / self.total_references if self.total_references else 0.0
        )


def _tokens(text: str | None) -> set[str]:
    if not text:
        return set()
    return {token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) >= 3}


def _name_tokens(text: str | None) -> set[str]:
    return _tokens(text) - _GENERIC_TOKENS


def _name_vocabulary(item: CatalogItem) -> set[str]:
    """Tokens a free-text name can legitimately point at: item name and category."""
    words = _name_tokens(item.name)
    for tag in item.category:
        words |= _name_tokens(tag)
    return words


def _pick(
    pools: tuple[list[CatalogItem], ...], score: Callable[[CatalogItem], float]
) -> CatalogItem | None:
    """Highest positive score from the first pool that has one; ties keep allowed-set order."""
    for pool in pools:
        best, best_score = None, 0.0
        for item in pool:
            value = score(item)
            if value > best_score:
                best, best_score = item, value
        if best is not None:
            return best
    return None


class ValidationRepairEngine:
    """Checks and repairs catalog references in a generated plan."""

    def __init__(
        self,
        max_hallucination_ratio: float = 0.25,
        name_similarity_threshold: float = 0.6,
        calorie_tolerance: int = 100,
        max_portion_scale: float = 2.0,
    ) -> None:
        self.max_hallucination_ratio = max_hallucination_ratio
        self.name_similarity_threshold = name_similarity_threshold
        self.calorie_tolerance = calorie_tolerance
        self.max_portion_scale = max_portion_scale

    def validate(
        self,
        spec: KindSpec,
        raw_plan: dict[str, Any],
        allowed: list[CatalogItem],
        catalog: Catalog,
        target_calories: int | None = None,
    ) -> tuple[dict[str, Any], ValidationReport]:
        """
        Resolve, check and enrich every reference in a plan.

        Args:
            spec: Kind wiring (where references live, which key holds the ID)
            raw_plan: Parsed model output (not modified)
            allowed: Allowed set, in filter order
            catalog: Full reference catalog
            target_calories: Requested daily calories; meal portions are scaled to it

        Returns:
            (repaired plan, report)

        Raises:
            HallucinationError: Unresolved references or too many hallucinations
            CatalogIntegrityError: A resolved item has no demonstration asset
        """
        plan = copy.deepcopy(raw_plan)
        references = list(spec.iter_references(plan))
        allowed_by_id = {item.id: item for item in allowed}
        key = spec.reference_key

        # IDs the plan already uses legitimately are not handed out as replacements
        used: set[str] = {
            str(entry.get(key, "")).strip()
            for _, entry in references
            if str(entry.get(key, "")).strip() in allowed_by_id
        }

        report = ValidationReport()
        for path, entry in references:
            original = str(entry.get(key, "")).strip()
            result = self._resolve(path, original, entry, allowed, allowed_by_id, catalog, used)
            report.item_results.append(result)

            if result.status == ItemStatus.REPLACED:
                report.warnings.append(f"{path}: {result.reason}")
                logger.warning(f"Replaced {original} -> {result.final_id}: {result.reason}")
            elif result.status != ItemStatus.VALID:
                report.errors.append(f"{path}: {result.reason}")
                logger.error(f"Hallucinated reference {original!r} at {path}: {result.reason}")

            if result.final_id is not None:
                entry[key] = result.final_id
                used.add(result.final_id)

        report.summarize()

        if report.unresolved_count or report.hallucination_ratio > self.max_hallucination_ratio:
            if report.unresolved_count:
                message = (
                    f"{report.unresolved_count} reference(s) could not be resolved: "
                    f"{', '.join(report.unresolved_ids)}"
                )
            else:
                message = (
                    f"Hallucination ratio {report.hallucination_ratio:.2f} exceeds "
                    f"{self.max_hallucination_ratio:.2f} "
                    f"({report.hallucinated_count}/{report.total_references})"
                )
            raise HallucinationError(message, report)

        self._check_assets(report, catalog)

        for _, entry in references:
            item = catalog.get(entry[key])
            entry["name"] = item.name
            entry["asset_ref"] = item.asset_ref

        if spec.kind == JobKind.MEAL_PLAN and target_calories:
            self._adjust_portions(plan, spec, target_calories, report)

        logger.info(
            f"Validation: {report.valid_count} valid, {report.replaced_count} replaced, "
            f"{report.hallucinated_count} hallucinated of {report.total_references}"
        )
        return plan, report

    def _resolve(
        self,
        path: str,
        original: str,
        entry: dict[str, Any],
        allowed: list[CatalogItem],
        allowed_by_id: dict[str, CatalogItem],
        catalog: Catalog,
        used: set[str],
    ) -> ItemResult:
        if original in allowed_by_id:
            return ItemResult(
                path=path, original_id=original, final_id=original, status=ItemStatus.VALID
            )

        unused = [item for item in allowed if item.id not in used]
        pools = (unused, allowed)

        source = catalog.get(original)
        if source is not None:
            replacement, how = self._replace_catalog_hit(source, pools)
            return ItemResult(
                path=path,
                original_id=original,
                final_id=replacement.id,
                status=ItemStatus.REPLACED,
                reason=f"'{original}' is outside the allowed set; replaced by "
                f"'{replacement.id}' ({how})",
            )

        replacement, how = self._recover_hallucination(entry, pools)
        if replacement is None:
            return ItemResult(
                path=path,
                original_id=original,
                final_id=None,
                status=ItemStatus.UNRESOLVED,
                reason=f"'{original}' does not exist in the catalog and no plausible "
                "substitute was found",
            )
        return ItemResult(
            path=path,
            original_id=original,
            final_id=replacement.id,
            status=ItemStatus.REPLACED_FROM_HALLUCINATION,
            reason=f"'{original}' does not exist in the catalog; recovered as "
            f"'{replacement.id}' ({how})",
        )

    @staticmethod
    def _replace_catalog_hit(
        source: CatalogItem, pools: tuple[list[CatalogItem], ...]
    ) -> tuple[CatalogItem, str]:
        semantic = source.semantic_tags()
        categories = source.category_tags()

        def both(item: CatalogItem) -> float:
            sem = len(item.semantic_tags() & semantic)
            cat = len(item.category_tags() & categories)
            return sem + cat if sem and cat else 0

        match = _pick(pools, both)
        if match is not None:
            return match, "matching attributes and category"

        match = _pick(pools, lambda item: len(item.category_tags() & categories))
        if match is not None:
            return match, "matching category"

        fallback = pools[0][0] if pools[0] else pools[1][0]
        return fallback, "first allowed item"

    def _recover_hallucination(
        self, entry: dict[str, Any], pools: tuple[list[CatalogItem], ...]
    ) -> tuple[CatalogItem | None, str]:
        # A fabricated ID carries no information about the intended item
        hint_name = str(entry.get("name") or "").strip()
        if not hint_name:
            return None, "no name hint"
        hints = _name_tokens(hint_name)

        def similarity(item: CatalogItem) -> float:
            return difflib.SequenceMatcher(None, hint_name.lower(), item.name.lower()).ratio()

        def token_score(item: CatalogItem) -> float:
            overlap = len(hints & _name_vocabulary(item))
            # Token overlap dominates; similarity only breaks ties
            return overlap + similarity(item) / 10 if overlap else 0.0

        def similar_enough(item: CatalogItem) -> float:
            score = similarity(item)
            return score if score >= self.name_similarity_threshold else 0.0

        match = _pick(pools, token_score)
        if match is not None:
            return match, f"name hints {sorted(hints & _name_vocabulary(match))}"

        match = _pick(pools, similar_enough)
        if match is not None:
            return match, f"name similarity {similarity(match):.2f}"

        return None, "no match"

    @staticmethod
    def _check_assets(report: ValidationReport, catalog: Catalog) -> None:
        missing = sorted(
            {
                r.final_id
                for r in report.item_results
                if r.final_id is not None and not catalog.get(r.final_id).has_asset
            }
        )
        if missing:
            logger.critical(
                f"Catalog v{catalog.version} items without demonstration asset: {missing}"
            )
            raise CatalogIntegrityError(missing, catalog.version)

    def _adjust_portions(
        self,
        plan: dict[str, Any],
        spec: KindSpec,
        target: int,
        report: ValidationReport,
    ) -> None:
        """
        Scale every food portion so the plan lands on the calorie target.

        Drift inside the deadband is left alone. The factor is clamped to
        [1/max_portion_scale, max_portion_scale]; whatever drift remains after
        scaling beyond calorie_tolerance is reported as a warning.
        """
        entries = [entry for _, entry in spec.iter_references(plan)]
        total = sum(_calories(entry) for entry in entries)
        report.calories_before_scaling = total

        if total > 0 and abs(1 - target / total) >= _SCALE_DEADBAND:
            factor = min(max(target / total, 1 / self.max_portion_scale), self.max_portion_scale)
            for entry in entries:
                entry["calories"] = round(_calories(entry) * factor)
                if "quantity" in entry:
                    entry["quantity"] = _scale_quantity(entry["quantity"], factor)
            report.calorie_scale_factor = round(factor, 4)
            scaled = sum(_calories(entry) for entry in entries)
            logger.info(
                f"Scaled portions by {factor:.3f}: {total} -> {scaled} kcal (target {target})"
            )
            total = scaled

        plan["total_calories"] = total
        drift = total - target
        if abs(drift) > self.calorie_tolerance:
            message = (
                f"Plan totals {total} kcal, {abs(drift)} kcal "
                f"{'over' if drift > 0 else 'under'} the {target} kcal target"
            )
            report.warnings.append(message)
            logger.warning(message)


def _calories(entry: dict[str, Any]) -> int:
    return int(entry.get("calories") or 0)


def _scale_quantity(quantity: Any, factor: float) -> Any:
    """Scale a numeric quantity or the leading amount of "150 g"; anything else is kept."""
    if isinstance(quantity, (int, float)) and not isinstance(quantity, bool):
        return round(quantity * factor, 1)
    if not isinstance(quantity, str):
        return quantity
    match = _QUANTITY.match(quantity)
    if match is None:
        return quantity
    amount = round(float(match.group(1)) * factor, 1)
    return f"{amount:g}{match.group(2)}"
