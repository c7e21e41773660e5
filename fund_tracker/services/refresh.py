from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed, wait
from typing import Iterable

from fund_tracker.errors import AggregateNoDataError
from fund_tracker.schemas.quote import Quote


def unique_codes(*code_lists: Iterable[str]) -> list[str]:
    """Union of code lists, first-seen order, blanks dropped."""
    out: list[str] = []
    seen: set[str] = set()
    for codes in code_lists:
        for code in codes:
            value = str(code).strip()
            if not value or value in seen:
                continue
            seen.add(value)
            out.append(value)
    return out


class RefreshOrchestrator:
    """Reconcile a batch of codes with at most ``max_concurrency`` in flight.

    Failed codes are left out of the result; the batch itself never fails.
    Cached display fields are written through ``store.update_cached_quote`` on a
    separate executor so persistence never holds up collection.
    """

    def __init__(
        self,
        *,
        reconciler,
        store=None,
        max_concurrency: int = 5,
        persist_workers: int = 2,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.reconciler = reconciler
        self.store = store
        self.max_concurrency = max_concurrency
        self._persist_executor = ThreadPoolExecutor(max_workers=persist_workers, thread_name_prefix="quote-persist")
        self._pending_lock = threading.Lock()
        self._pending: set[Future] = set()

        self.batches = 0
        self.persist_failures = 0
        self.last_batch_target = 0
        self.last_batch_final = 0
        self.last_failed_codes: list[str] = []

    def _persist(self, owner_id: str, quote: Quote) -> None:
        self.store.update_cached_quote(owner_id, quote.code, quote.name, quote.value, quote.change_percent)

    def _on_persist_done(self, future: Future) -> None:
        exc = future.exception()
        with self._pending_lock:
            self._pending.discard(future)
            if exc is not None:
                self.persist_failures += 1
        if exc is not None:
            print(f"[REFRESH][persist_error] error={exc}", flush=True)

    def _submit_persist(self, owner_id: str, quote: Quote) -> None:
        future = self._persist_executor.submit(self._persist, owner_id, quote)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._on_persist_done)

    def refresh_all(self, codes: Iterable[str], *, owner_id: str | None = None) -> list[Quote]:
        targets = unique_codes(codes)
        results: list[Quote] = []
        failed: list[str] = []

        if targets:
            with ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="quote-refresh") as executor:
                future_to_code = {executor.submit(self.reconciler.reconcile, code): code for code in targets}
                for future in as_completed(future_to_code):
                    code = future_to_code[future]
                    try:
                        quote = future.result()
                    except AggregateNoDataError:
                        failed.append(code)
                        continue
                    except Exception as exc:
                        failed.append(code)
                        print(f"[REFRESH][reconcile_error] code={code} error={exc}", flush=True)
                        continue
                    results.append(quote)
                    if owner_id is not None and self.store is not None:
                        self._submit_persist(owner_id, quote)

        self.batches += 1
        self.last_batch_target = len(targets)
        self.last_batch_final = len(results)
        self.last_failed_codes = sorted(failed)

        print(
            "[REFRESH][batch_resolve] "
            f"owner={owner_id or '-'} target_count={len(targets)} final_count={len(results)} "
            f"failed_count={len(failed)} max_concurrency={self.max_concurrency}",
            flush=True,
        )
        return results

    def refresh_owner(self, owner_id: str) -> list[Quote]:
        if self.store is None:
            raise RuntimeError("portfolio store is not configured")
        codes = unique_codes(self.store.holding_codes(owner_id), self.store.watch_codes(owner_id))
        return self.refresh_all(codes, owner_id=owner_id)

    def wait_for_persistence(self, timeout: float | None = None) -> bool:
        """Block until queued cache writes finish. Returns False on timeout."""
        with self._pending_lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        self._persist_executor.shutdown(wait=True)

    def metrics(self) -> dict:
        with self._pending_lock:
            pending = len(self._pending)
            persist_failures = self.persist_failures
        return {
            "batches": self.batches,
            "batch_target_count": self.last_batch_target,
            "batch_final_count": self.last_batch_final,
            "failed_codes": list(self.last_failed_codes),
            "persist_failures": persist_failures,
            "persist_pending": pending,
            "max_concurrency": self.max_concurrency,
        }
