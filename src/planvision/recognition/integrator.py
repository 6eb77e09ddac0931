"""
Detection Integrator - Merges semantic and geometric detections
"""
from typing import List, Optional
from dataclasses import dataclass, field
import logging

from .element_detector import DetectedElement, unique_id

logger = logging.getLogger(__name__)


@dataclass
class IntegrationRules:
    """Confidence adjustments applied while merging"""
    semantic_boost: float = 0.1
    orphan_min_confidence: float = 0.5
    orphan_penalty: float = 0.2
    orphan_floor: float = 0.3
    support_bonus: float = 0.1


@dataclass
class IntegrationResult:
    """Merged element list plus bookkeeping"""
    elements: List[DetectedElement] = field(default_factory=list)
    semantic_supported: int = 0
    orphans_kept: int = 0
    orphans_dropped: int = 0


def relevance_score(element: DetectedElement, support_bonus: float = 0.1) -> float:
    """Confidence plus a bonus per independent source that backs the element"""
    score = element.confidence
    if element.has_morphological_support:
        score += support_bonus
    if element.has_semantic_support:
        score += support_bonus
    return score


def sort_by_relevance(elements: List[DetectedElement], support_bonus: float = 0.1) -> List[DetectedElement]:
    """Descending relevance; equal scores keep their input order"""
    return sorted(elements, key=lambda e: relevance_score(e, support_bonus), reverse=True)


class DetectionIntegrator:
    """
    Combines classifier detections with morphological components.

    Semantic elements always survive; overlapping components confirm them
    and raise their confidence. Components no semantic element overlaps are
    kept as orphans only when reasonably confident, and are demoted.
    """

    def __init__(self, rules: Optional[IntegrationRules] = None):
        self.rules = rules or IntegrationRules()

    def integrate(
        self,
        semantic: List[DetectedElement],
        geometric: List[DetectedElement],
    ) -> IntegrationResult:
        r = self.rules
        result = IntegrationResult()
        merged = []

        for s in semantic:
            matches = [g for g in geometric if s.bbox.overlaps(g.bbox)]
            if not matches:
                merged.append(s)
                continue

            boundaries = tuple(p for g in matches for p in (g.pixel_boundaries or ()))
            merged.append(s.updated(
                confidence=min(1.0, s.confidence + r.semantic_boost),
                has_morphological_support=True,
                morphological_matches=len(matches),
                pixel_boundaries=boundaries or None,
            ))
            result.semantic_supported += 1

        for g in geometric:
            if any(s.bbox.overlaps(g.bbox) for s in semantic):
                continue
            if g.confidence > r.orphan_min_confidence:
                merged.append(g.updated(
                    confidence=max(r.orphan_floor, g.confidence - r.orphan_penalty),
                    has_semantic_support=False,
                ))
                result.orphans_kept += 1
            else:
                result.orphans_dropped += 1

        # Classifier ids may collide with morph_<n>; semantic elements keep theirs
        taken_ids = set()
        for i, element in enumerate(merged):
            element_id = unique_id(element.id, taken_ids)
            if element_id != element.id:
                merged[i] = element.updated(id=element_id)

        result.elements = sort_by_relevance(merged, r.support_bonus)

        logger.info(
            f"Integrated {len(semantic)} semantic + {len(geometric)} geometric -> "
            f"{len(result.elements)} elements ({result.semantic_supported} confirmed, "
            f"{result.orphans_kept} orphans kept, {result.orphans_dropped} dropped)"
        )
        return result
