"""
Price sync orchestrator.

Runs one price list through the saga:

    resolving -> diffing -> applying -> reporting -> done
                                |
                                +-> compensating -> reporting -> failed

Every catalog price change is recorded in a per-run undo log. When an
update fails, no new updates start, and the undo log is replayed in
reverse to put the previous prices back. A run always ends with a
SyncRunReport and persisted item statuses, also when it fails.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional
import threading
import structlog

from config import settings
from exceptions import (
    AppError,
    ApplyFailure,
    CompensationFailure,
)
from integrations.telegram import send_sync_failure_alert
from models.price_list import (
    PriceListItemResponse,
    PriceListResponse,
    SupplierResponse,
    SyncStatus,
)
from models.sync import (
    ItemOutcome,
    SyncDecision,
    SyncRunReport,
    SyncState,
    SyncSummary,
)
from services.catalog_service import CatalogGateway, get_catalog_service
from services.conflict_resolver import PriceCandidate, exclusion_reason, resolve_conflicts
from services.price_list_service import PriceListService, get_price_list_service
from services.variant_resolver import (
    Orphan,
    OrphanProvisioner,
    Resolved,
    VariantResolver,
)

logger = structlog.get_logger(__name__)


# Allowed saga transitions
TRANSITIONS: dict[SyncState, set[SyncState]] = {
    SyncState.RESOLVING: {SyncState.DIFFING, SyncState.FAILED},
    SyncState.DIFFING: {SyncState.APPLYING, SyncState.REPORTING, SyncState.FAILED},
    SyncState.APPLYING: {SyncState.REPORTING, SyncState.COMPENSATING},
    SyncState.COMPENSATING: {SyncState.REPORTING, SyncState.FAILED},
    SyncState.REPORTING: {SyncState.DONE, SyncState.FAILED},
    SyncState.DONE: set(),
    SyncState.FAILED: set(),
}


@dataclass
class UndoEntry:
    """One applied price change."""
    variant_id: str
    item_id: str
    previous_amount: Optional[Decimal]
    new_amount: Decimal
    currency_code: str


@dataclass
class SyncRun:
    """Mutable state of one sync run."""
    price_list: PriceListResponse
    supplier: SupplierResponse
    force_sync: bool
    dry_run: bool
    state: SyncState = SyncState.RESOLVING
    outcomes: dict[str, ItemOutcome] = field(default_factory=dict)
    decisions: list[SyncDecision] = field(default_factory=list)
    undo_log: list[UndoEntry] = field(default_factory=list)
    rolled_back_count: int = 0
    requires_manual_review: bool = False
    error: Optional[str] = None

    def transition(self, target: SyncState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid sync transition {self.state.value} -> {target.value}")
        logger.debug(
            "sync_state_changed",
            price_list_id=self.price_list.id,
            from_state=self.state.value,
            to_state=target.value
        )
        self.state = target

    def record(self, item_id: str, status: SyncStatus, note: Optional[str] = None) -> None:
        self.outcomes[item_id] = ItemOutcome(id=item_id, status=status, note=note)


class SyncService:
    """
    Syncs the prices of a committed price list into the catalog.
    """

    def __init__(
        self,
        store: Optional[PriceListService] = None,
        catalog: Optional[CatalogGateway] = None,
        max_workers: Optional[int] = None,
        apply_workers: Optional[int] = None,
    ):
        self.store = store or get_price_list_service()
        self.catalog = catalog or get_catalog_service()
        self.max_workers = max_workers or settings.sync_max_workers
        self.apply_workers = apply_workers or settings.sync_apply_workers
        self.resolver = VariantResolver(self.catalog, self.store, self.max_workers)
        self.provisioner = OrphanProvisioner(self.catalog)

    def sync(
        self,
        price_list_id: str,
        force_sync: bool = False,
        dry_run: bool = False,
        today: Optional[date] = None,
    ) -> SyncRunReport:
        """
        Sync a price list's prices to the catalog.

        Args:
            price_list_id: Price list UUID
            force_sync: Ignore preferred-supplier precedence
            dry_run: Compute and report decisions without touching the catalog
            today: Date used for effective/expiry checks (default: today)

        Returns:
            SyncRunReport, with success=False when the run failed

        Raises:
            PriceListNotFoundError: If the price list doesn't exist
        """
        price_list = self.store.get_by_id(price_list_id)
        supplier = self.store.get_supplier(price_list.supplier_id)
        today = today or date.today()

        run = SyncRun(
            price_list=price_list,
            supplier=supplier,
            force_sync=force_sync,
            dry_run=dry_run,
        )

        logger.info(
            "price_sync_started",
            price_list_id=price_list_id,
            supplier_id=supplier.id,
            force_sync=force_sync,
            dry_run=dry_run
        )

        try:
            items = self._resolve(run)
            to_apply = self._diff(run, items, today)
        except AppError as e:
            logger.error("price_sync_aborted", price_list_id=price_list_id, state=run.state.value, error=e.message)
            run.error = e.message
            self._persist(run)
            run.transition(SyncState.FAILED)
            report = self._build_report(run)
            self._alert(run, report)
            return report

        if dry_run:
            for decision in to_apply:
                run.record(
                    decision.winning_price_list_item_id,
                    SyncStatus.PENDING,
                    f"Dry run: would change price from {decision.previous_amount} "
                    f"to {decision.amount} {decision.currency_code}",
                )
            run.transition(SyncState.REPORTING)
        else:
            run.transition(SyncState.APPLYING)
            self._apply(run, to_apply)

        self._persist(run)
        run.transition(SyncState.DONE if run.error is None else SyncState.FAILED)

        report = self._build_report(run)
        logger.info(
            "price_sync_finished",
            price_list_id=price_list_id,
            success=report.success,
            state=report.state.value,
            updated=report.updated_count,
            rolled_back=report.rolled_back_count
        )
        if not report.success:
            self._alert(run, report)
        return report

    # ===================
    # RESOLVING
    # ===================

    def _resolve(self, run: SyncRun) -> list[PriceListItemResponse]:
        """
        Resolve every item of the list to a variant.

        Returns:
            Items of the list, with product_variant_id set where resolved
        """
        items = self.store.get_items(run.price_list.id)
        resolutions = self.resolver.resolve_all(items)

        orphans = [item for item in items if isinstance(resolutions[item.id], Orphan)]
        if orphans:
            if run.dry_run:
                for item in orphans:
                    run.record(
                        item.id,
                        SyncStatus.SKIPPED,
                        f"Dry run: catalog variant {item.supplier_sku} would be created",
                    )
            elif not settings.auto_create_variants:
                for item in orphans:
                    run.record(
                        item.id,
                        SyncStatus.SKIPPED,
                        f"{resolutions[item.id].reason}; variant creation disabled",
                    )
            else:
                created, failed = self.provisioner.provision_all(orphans, run.price_list, run.supplier)
                resolutions.update(created)
                for item_id, message in failed.items():
                    run.record(item_id, SyncStatus.ERROR, message)

        if not run.dry_run:
            self.resolver.link_back(items, resolutions)

        resolved = []
        for item in items:
            resolution = resolutions.get(item.id)
            if isinstance(resolution, Resolved):
                resolved.append(item.model_copy(update={"product_variant_id": resolution.variant_id}))

        run.transition(SyncState.DIFFING)
        return resolved

    # ===================
    # DIFFING
    # ===================

    def _gather_candidates(
        self,
        run: SyncRun,
        items: list[PriceListItemResponse],
    ) -> dict[str, list[PriceCandidate]]:
        """Candidates per variant: this list's items plus items of other active lists."""
        variant_ids = sorted({item.product_variant_id for item in items})
        others = self.store.get_active_items_for_variants(variant_ids, exclude_price_list_id=run.price_list.id)

        price_lists = self.store.get_by_ids([other.price_list_id for other in others])
        price_lists[run.price_list.id] = run.price_list
        suppliers = self.store.get_suppliers([other.supplier_id for other in others])
        suppliers[run.supplier.id] = run.supplier

        candidates: dict[str, list[PriceCandidate]] = {vid: [] for vid in variant_ids}
        for item in items:
            candidates[item.product_variant_id].append(
                PriceCandidate.from_records(item, run.price_list, run.supplier)
            )
        for other in others:
            price_list = price_lists.get(other.price_list_id)
            supplier = suppliers.get(other.supplier_id)
            if price_list is None or supplier is None:
                continue
            candidates[other.product_variant_id].append(
                PriceCandidate.from_records(other, price_list, supplier)
            )
        return candidates

    def _decide(
        self,
        variant_id: str,
        candidates: list[PriceCandidate],
        force_sync: bool,
        today: date,
    ) -> tuple[Optional[SyncDecision], Optional[Decimal]]:
        decision = resolve_conflicts(variant_id, candidates, force_sync=force_sync, today=today)
        if decision is None:
            return None, None
        current = self.catalog.get_variant_price(variant_id, decision.currency_code)
        return decision, current

    def _diff(
        self,
        run: SyncRun,
        items: list[PriceListItemResponse],
        today: date,
    ) -> list[SyncDecision]:
        """
        Pick a winner per variant and keep the ones that change the catalog.

        Returns:
            Decisions to apply, ordered by variant id
        """
        candidates = self._gather_candidates(run, items)

        results: dict[str, tuple[Optional[SyncDecision], Optional[Decimal]]] = {}
        if candidates:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(self._decide, vid, group, run.force_sync, today): vid
                    for vid, group in candidates.items()
                }
                for future in as_completed(futures):
                    results[futures[future]] = future.result()

        to_apply: list[SyncDecision] = []
        for variant_id in sorted(results):
            decision, current = results[variant_id]

            if decision is None:
                for candidate in candidates[variant_id]:
                    run.record(
                        candidate.item_id,
                        SyncStatus.SKIPPED,
                        exclusion_reason(candidate, today) or "No eligible supplier price",
                    )
                continue

            for item_id, note in decision.skip_notes.items():
                run.record(item_id, SyncStatus.SKIPPED, note)

            decision.previous_amount = current
            run.decisions.append(decision)

            if current is not None and current == decision.amount:
                run.record(decision.winning_price_list_item_id, SyncStatus.SYNCED, "Price already up to date")
                continue
            to_apply.append(decision)

        logger.info(
            "price_sync_diffed",
            price_list_id=run.price_list.id,
            variants=len(results),
            to_apply=len(to_apply)
        )
        return to_apply

    # ===================
    # APPLYING
    # ===================

    def _apply(self, run: SyncRun, decisions: list[SyncDecision]) -> None:
        """
        Apply decisions on a bounded pool, one variant at a time.

        The first failure stops new updates and triggers compensation.
        """
        halt = threading.Event()
        variant_locks = {decision.variant_id: threading.Lock() for decision in decisions}
        undo_lock = threading.Lock()

        def apply_one(decision: SyncDecision) -> bool:
            if halt.is_set():
                return False
            with variant_locks[decision.variant_id]:
                if halt.is_set():
                    return False
                try:
                    previous = self.catalog.set_variant_price(
                        decision.variant_id, decision.amount, decision.currency_code
                    )
                except Exception as e:
                    halt.set()
                    raise ApplyFailure(decision.variant_id, str(e))
                with undo_lock:
                    run.undo_log.append(UndoEntry(
                        variant_id=decision.variant_id,
                        item_id=decision.winning_price_list_item_id,
                        previous_amount=previous,
                        new_amount=decision.amount,
                        currency_code=decision.currency_code,
                    ))
            return True

        failures: list[ApplyFailure] = []
        with ThreadPoolExecutor(max_workers=self.apply_workers) as executor:
            futures = {executor.submit(apply_one, decision): decision for decision in decisions}
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                try:
                    future.result()
                except ApplyFailure as e:
                    failures.append(e)
                    for pending in futures:
                        pending.cancel()

        if not failures:
            for entry in run.undo_log:
                run.record(
                    entry.item_id,
                    SyncStatus.SYNCED,
                    f"Price set to {entry.new_amount} {entry.currency_code}",
                )
            run.transition(SyncState.REPORTING)
            return

        failure = failures[0]
        logger.error(
            "price_apply_failed",
            price_list_id=run.price_list.id,
            variant_id=failure.variant_id,
            applied=len(run.undo_log),
            error=failure.message
        )
        run.error = failure.message
        run.transition(SyncState.COMPENSATING)
        self._compensate(run)

        failed_variants = {f.variant_id: f for f in failures}
        applied = {entry.variant_id for entry in run.undo_log}
        for decision in decisions:
            item_id = decision.winning_price_list_item_id
            if decision.variant_id in failed_variants:
                run.record(item_id, SyncStatus.ERROR, failed_variants[decision.variant_id].message)
            elif decision.variant_id not in applied:
                run.record(item_id, SyncStatus.SKIPPED, "Not applied, run aborted")

    def _compensate(self, run: SyncRun) -> None:
        """
        Replay the undo log in reverse.

        Every entry is attempted even after a revert fails.
        """
        failures: list[dict] = []
        for entry in reversed(run.undo_log):
            try:
                self.catalog.set_variant_price(entry.variant_id, entry.previous_amount, entry.currency_code)
            except Exception as e:
                logger.error(
                    "price_revert_failed",
                    variant_id=entry.variant_id,
                    previous_amount=str(entry.previous_amount),
                    error=str(e)
                )
                failures.append({"variant_id": entry.variant_id, "error": str(e)})
                run.record(
                    entry.item_id,
                    SyncStatus.ERROR,
                    f"Revert to {entry.previous_amount} failed; manual review required",
                )
                continue
            run.rolled_back_count += 1
            run.record(entry.item_id, SyncStatus.ERROR, f"Rolled back to previous price {entry.previous_amount}")

        logger.info(
            "price_sync_compensated",
            price_list_id=run.price_list.id,
            rolled_back=run.rolled_back_count,
            failed=len(failures)
        )

        if failures:
            compensation = CompensationFailure(failures)
            logger.error(
                "price_sync_compensation_failed",
                price_list_id=run.price_list.id,
                failures=failures
            )
            run.requires_manual_review = True
            run.error = compensation.message

        run.transition(SyncState.REPORTING)

    # ===================
    # REPORTING
    # ===================

    def _persist(self, run: SyncRun) -> None:
        """Write the outcome of every candidate item back to the store."""
        for outcome in run.outcomes.values():
            try:
                self.store.update_item_status(outcome.id, outcome.status, outcome.note)
            except AppError as e:
                logger.error("persist_item_status_failed", item_id=outcome.id, error=e.message)
                if run.error is None:
                    run.error = f"Could not record status of item {outcome.id}: {e.message}"

    def _build_report(self, run: SyncRun) -> SyncRunReport:
        outcomes = sorted(run.outcomes.values(), key=lambda o: o.id)
        summary = SyncSummary(
            total_items=len(outcomes),
            variants_to_update=sum(1 for d in run.decisions if d.previous_amount != d.amount),
            synced=sum(1 for o in outcomes if o.status == SyncStatus.SYNCED),
            skipped=sum(1 for o in outcomes if o.status == SyncStatus.SKIPPED),
            errors=sum(1 for o in outcomes if o.status == SyncStatus.ERROR),
        )

        return SyncRunReport(
            price_list_id=run.price_list.id,
            success=run.state == SyncState.DONE,
            state=run.state,
            dry_run=run.dry_run,
            # Prices still changed in the catalog after any rollback
            updated_count=len(run.undo_log) - run.rolled_back_count,
            items_processed=outcomes,
            decisions=run.decisions,
            summary=summary,
            rolled_back_count=run.rolled_back_count,
            requires_manual_review=run.requires_manual_review,
            error=run.error,
        )

    def _alert(self, run: SyncRun, report: SyncRunReport) -> None:
        send_sync_failure_alert(report, run.supplier.name, run.price_list.name)


# Singleton instance
_service: Optional[SyncService] = None


def get_sync_service() -> SyncService:
    """Get or create SyncService instance."""
    global _service
    if _service is None:
        _service = SyncService()
    return _service
