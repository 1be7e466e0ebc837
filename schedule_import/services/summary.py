from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from ..models.processing_result import ImportOutcome, ImportReport, ImportSummary, OutcomeStatus

"""Import report building and SUMMARY line rendering."""


def summarize(outcomes: Iterable[ImportOutcome], duration_ms: int = 0) -> ImportSummary:
    """Aggregate per-row outcomes into counts. Pure, never fails."""
    statuses: Counter[OutcomeStatus] = Counter()
    reasons: Counter[str] = Counter()
    for outcome in outcomes:
        statuses[outcome.status] += 1
        if outcome.status is OutcomeStatus.SKIPPED and outcome.reason is not None:
            reasons[outcome.reason.value] += 1
    return ImportSummary(
        inserted=statuses[OutcomeStatus.INSERTED],
        updated=statuses[OutcomeStatus.UPDATED],
        skipped=statuses[OutcomeStatus.SKIPPED],
        errors=statuses[OutcomeStatus.ERRORED],
        skip_reason_breakdown=dict(sorted(reasons.items())),
        duration_ms=duration_ms,
    )


def render_summary_line(report: ImportReport) -> str:
    """Render the SUMMARY line for one import run.

    Format:
    SUMMARY sheet="{sheet}" rows={n} inserted={i} updated={u} skipped={s}
    errors={e} deduped={d} duration_ms={ms} committed={true|false} skip_reasons={r:n,...|-}

    Examples:
        >>> s = ImportSummary(inserted=2, updated=1, skipped=1, errors=0,
        ...                   skip_reason_breakdown={"store_not_found": 1}, duration_ms=15)
        >>> render_summary_line(ImportReport(sheet_name="Shift Detail", summary=s, outcomes=[]))
        'SUMMARY sheet="Shift Detail" rows=4 inserted=2 updated=1 skipped=1 errors=0 deduped=1 duration_ms=15 committed=true skip_reasons=store_not_found:1'
    """
    s = report.summary
    reasons = ",".join(f"{k}:{v}" for k, v in s.skip_reason_breakdown.items()) or "-"
    return (
        f'SUMMARY sheet="{report.sheet_name}" '
        f"rows={s.total_rows} "
        f"inserted={s.inserted} "
        f"updated={s.updated} "
        f"skipped={s.skipped} "
        f"errors={s.errors} "
        f"deduped={s.deduped} "
        f"duration_ms={s.duration_ms} "
        f"committed={'true' if report.committed else 'false'} "
        f"skip_reasons={reasons}"
    )
