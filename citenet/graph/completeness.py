# citenet/graph/completeness.py

from __future__ import annotations

from typing import Optional

from citenet.api.models import CompletenessReport
from citenet.config.settings import ProviderName
from citenet.models.session import GraphSession

# Providers whose source record reports the full original reference list.
REFERENCE_COUNT_PROVIDERS = {
    ProviderName.SEMANTIC_SCHOLAR,
    ProviderName.CROSSREF,
    ProviderName.OPENCITATIONS,
}

# Providers that keep unresolvable references as holes.
HOLE_PRESERVING_PROVIDERS = {
    ProviderName.SEMANTIC_SCHOLAR,
    ProviderName.CROSSREF,
}


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    if not denominator:
        return None
    return numerator / denominator


def _pct(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{round(value * 100)}%"


def estimate_completeness(session: GraphSession) -> CompletenessReport:
    """
    How much of the true reference structure the session represents.

    Pure function of the session; ratios that do not apply to the session's
    provider (or that would divide by zero) are None.
    """
    source = session.source
    original = source.custom_list_of_references if source.custom_list_of_references is not None else source.references
    source_reference_count = len(original or [])

    without_source = [a for a in session.input if a.id and not a.is_source]
    with_references = [a for a in without_source if a.references]

    reference_coverage = None
    if session.api in REFERENCE_COUNT_PROVIDERS or source.custom_list_of_references is not None or session.is_list_based:
        reference_coverage = _ratio(len(without_source), source_reference_count)
        if reference_coverage is not None:
            reference_coverage = min(reference_coverage, 1.0)

    reference_list_coverage = _ratio(len(with_references), len(without_source))

    average_inner = None
    if session.api in HOLE_PRESERVING_PROVIDERS and with_references:
        average_inner = sum(
            len([r for r in a.references if r]) / len(a.references) for a in with_references
        ) / len(with_references)

    overall = None
    if None not in (reference_coverage, reference_list_coverage, average_inner):
        overall = reference_coverage * reference_list_coverage * average_inner

    api = session.api.value
    if reference_coverage is not None:
        label = "Source and " if not session.is_list_based else ""
        label += (
            f"{len(without_source)} of originally {source_reference_count} "
            f"({_pct(reference_coverage)}) references were found in {api}, "
            f"{len(with_references)} of which have reference-lists themselves "
            f"({_pct(reference_list_coverage)})."
        )
    else:
        label = (
            f"{len(with_references)} of {len(without_source)} input articles "
            f"{'(excluding source) ' if not session.is_list_based else ''}"
            f"have reference-lists themselves in {api} ({_pct(reference_list_coverage)})."
        )
    if average_inner is not None:
        label += f" Their respective average reference completeness is {_pct(average_inner)}."

    return CompletenessReport(
        source_reference_count=source_reference_count,
        input_without_source=len(without_source),
        input_with_own_references=len(with_references),
        reference_coverage=reference_coverage,
        reference_list_coverage=reference_list_coverage,
        average_inner_completeness=average_inner,
        overall=overall,
        label=label,
    )
