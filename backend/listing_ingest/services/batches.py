# listing_ingest/services/batches.py
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..adapters.repos.properties import OVERRIDE_FIELDS, PropertyRepository
from ..config import settings
from ..domain.address import merge_address, placeholder_address
from ..domain.errors import NotFoundError, ValidationError
from ..domain.parsing import to_float, to_int
from ..domain.sites import detect_source, is_valid_url
from ..domain.transitions import IN_FLIGHT, PROGRESS, can_transition, ensure_transition
from ..domain.types import ParsedProperty
from ..integrations.services.outbox import ImportNotifier, notify_quietly
from ..models import Batch, BatchItem, BatchStatus, BatchStrategy, ParseStatus, Property
from .collections import CollectionDirectory, SqlCollectionDirectory
from .duplicates import DuplicateDetector
from .parser_factory import ParserFactory

log = logging.getLogger(__name__)

S = ParseStatus

NO_PARSER = "No parser available for this URL"
ITEM_NOT_PARSED = "Item not found or not parsed"
INTERRUPTED = "Interrupted before completion"
ITEM_BUSY = "Item is already being processed"
ITEM_MOVED = "Item changed state while it was being parsed"


@dataclass
class BatchSnapshot:
    batch: Batch
    items: list[BatchItem]


@dataclass(frozen=True)
class _Scope:
    batch_id: int
    owner_id: str
    collection_id: int


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def _item_result(item_id: int, url: str, status: ParseStatus, *, data: dict[str, Any] | None = None,
                 error: str | None = None, is_duplicate: bool = False) -> dict[str, Any]:
    return {
        "item_id": item_id,
        "url": url,
        "status": status.value,
        "data": data,
        "error": error,
        "is_duplicate": is_duplicate,
    }


def _clean_overrides(raw: dict[str, Any] | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in (raw or {}).items():
        if key not in OVERRIDE_FIELDS or value is None:
            continue
        if key in ("beds", "baths"):
            value = to_float(value)
        elif key == "sqft":
            value = to_int(value)
        else:
            value = str(value)
        if value is not None:
            out[key] = value
    return out


class BatchManager:
    """
    Owns import batches: item bookkeeping, the three parse strategies, and
    the final import into a collection.

    Every step opens its own session and commits, so item status is
    observable from outside while a strategy is still running. Background
    passes are asyncio tasks kept per batch so they can be awaited or
    cancelled.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        factory: ParserFactory,
        *,
        collections: CollectionDirectory | None = None,
        duplicates: DuplicateDetector | None = None,
        notifier: ImportNotifier | None = None,
        max_urls: int | None = None,
        item_delay_s: float | None = None,
        full_pass_delay_s: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session_maker = session_maker
        self.factory = factory
        self.collections = collections or SqlCollectionDirectory()
        self.duplicates = duplicates or DuplicateDetector()
        self.notifier = notifier
        self.max_urls = int(max_urls or settings.BATCH_MAX_URLS)
        self.item_delay_s = float(settings.BATCH_ITEM_DELAY_S if item_delay_s is None else item_delay_s)
        self.full_pass_delay_s = float(
            settings.BATCH_FULL_PASS_DELAY_S if full_pass_delay_s is None else full_pass_delay_s
        )
        self._sleep = sleep
        self._tasks: dict[int, set[asyncio.Task[None]]] = {}

    # -----------------------------
    # Batch lifecycle
    # -----------------------------
    async def create_batch(self, owner_id: str, collection_id: int) -> Batch:
        async with self.session_maker() as session:
            await self.collections.get_collection(session, owner_id, collection_id)
            batch = Batch(owner_id=owner_id, collection_id=collection_id, status=BatchStatus.pending)
            session.add(batch)
            await session.commit()
            log.info("Created batch %s for collection %s", batch.id, collection_id)
            return batch

    async def add_urls(self, batch_id: int, urls: Iterable[Any]) -> list[BatchItem]:
        urls = list(urls or [])
        if not urls:
            raise ValidationError("At least one URL is required")
        if len(urls) > self.max_urls:
            raise ValidationError(f"Too many URLs: {len(urls)} (max {self.max_urls} per request)")
        for u in urls:
            if not is_valid_url(u):
                raise ValidationError(f"Invalid URL: {u!r}")
        cleaned = [u.strip() for u in urls]

        async with self.session_maker() as session:
            batch = await self._load_batch(session, batch_id)
            if batch.status == BatchStatus.completed:
                raise ValidationError(f"Batch {batch_id} is completed; create a new batch")

            current = (
                await session.execute(select(func.max(BatchItem.position)).where(BatchItem.batch_id == batch_id))
            ).scalar()
            start = 0 if current is None else int(current) + 1

            items = [
                BatchItem(
                    batch_id=batch_id,
                    source_url=url,
                    source=detect_source(url),
                    position=start + i,
                    parse_status=S.pending,
                    loading_progress=0,
                )
                for i, url in enumerate(cleaned)
            ]
            session.add_all(items)
            await session.flush()

            batch.total_count = (
                await session.execute(select(func.count(BatchItem.id)).where(BatchItem.batch_id == batch_id))
            ).scalar_one()
            await session.commit()
            log.info("Batch %s: added %d URLs (total %d)", batch_id, len(items), batch.total_count)
            return items

    async def get_batch_status(self, batch_id: int) -> BatchSnapshot:
        async with self.session_maker() as session:
            batch = await self._load_batch(session, batch_id)
            return BatchSnapshot(batch=batch, items=await self._items(session, batch_id))

    async def delete_batch(self, batch_id: int) -> None:
        await self._cancel(batch_id)
        async with self.session_maker() as session:
            await self._load_batch(session, batch_id)
            await session.execute(delete(BatchItem).where(BatchItem.batch_id == batch_id))
            await session.execute(delete(Batch).where(Batch.id == batch_id))
            await session.commit()
        log.info("Deleted batch %s", batch_id)

    async def run_strategy(self, batch_id: int, strategy: str | BatchStrategy) -> Any:
        try:
            chosen = BatchStrategy(strategy)
        except ValueError as e:
            names = ", ".join(s.value for s in BatchStrategy)
            raise ValidationError(f"Unknown strategy {strategy!r}; expected one of: {names}") from e

        if chosen is BatchStrategy.instant:
            return await self.create_instant(batch_id)
        if chosen is BatchStrategy.progressive:
            return await self.parse_progressive(batch_id)
        return await self.parse_sequential(batch_id)

    # -----------------------------
    # Strategy: instant
    # -----------------------------
    async def create_instant(self, batch_id: int) -> list[Property]:
        """
        Commit a placeholder property per pending item from the URL alone,
        then backfill each one from a full parse in the background.
        """
        scope, pending = await self._start(batch_id, BatchStrategy.instant)

        committed: list[tuple[int, str, Property]] = []
        for item_id, url in pending:
            try:
                prop = await self._instant_item(scope, item_id, url)
            except Exception as e:
                log.exception("Instant import failed for item %s (%s)", item_id, url)
                await self._fail(item_id, _error_text(e))
                continue
            if prop is not None:
                committed.append((item_id, url, prop))

        if committed:
            self._spawn(batch_id, self._backfill_pass(scope, [(i, u, p.id) for i, u, p in committed]))
        else:
            await self._finish(batch_id)
        return [p for _, _, p in committed]

    async def _instant_item(self, scope: _Scope, item_id: int, url: str) -> Property | None:
        if not await self._advance(item_id, S.quick_parsing):
            return None

        parser = self.factory.get_parser(url)
        if parser is None:
            await self._fail(item_id, NO_PARSER)
            return None

        try:
            decoded = parser.extract_address_from_url(url)
            address = merge_address(decoded.address, None, url=url)
            source_id = decoded.source_id
        except ValidationError as e:
            log.warning("Item %s: no address in URL (%s); using placeholder", item_id, e)
            address, source_id = placeholder_address(url), url

        candidate = ParsedProperty(
            source_id=source_id,
            source=parser.source,
            address=address,
            source_url=url,
            is_quick=True,
        )

        async with self.session_maker() as session:
            item = await session.get(BatchItem, item_id)
            dup = await self.duplicates.check(session, scope.owner_id, scope.collection_id, candidate)
            if dup.is_duplicate:
                item.is_duplicate = True
                self._set_status(item, S.failed, error=f"Duplicate: {dup.reason}")
                await session.commit()
                return None

            prop = await PropertyRepository(session).commit_parsed(
                owner_id=scope.owner_id,
                collection_id=scope.collection_id,
                parsed=candidate,
                fully_parsed=False,
                loading_progress=PROGRESS[S.quick_parsed],
            )
            item.committed_property_id = prop.id
            item.quick_data_json = json.dumps(candidate.to_dict(), default=str)
            self._set_status(item, S.quick_parsed)
            await session.commit()
            return prop

    async def _backfill_pass(self, scope: _Scope, work: list[tuple[int, str, int]]) -> None:
        try:
            for n, (item_id, url, property_id) in enumerate(work):
                if n:
                    await self._sleep(self.full_pass_delay_s)
                try:
                    await self._backfill_item(scope, item_id, url, property_id)
                except Exception as e:
                    # the placeholder property stays; only the item records the failure
                    log.exception("Backfill failed for item %s (%s)", item_id, url)
                    await self._fail(item_id, _error_text(e))
        finally:
            await self._finish_quietly(scope.batch_id)

    async def _backfill_item(self, scope: _Scope, item_id: int, url: str, property_id: int) -> None:
        if not await self._advance(item_id, S.full_parsing):
            return
        parser = self.factory.get_parser(url)
        if parser is None:
            await self._fail(item_id, NO_PARSER)
            return

        parsed = await parser.parse(url)

        async with self.session_maker() as session:
            prop = await PropertyRepository(session).backfill(property_id, parsed)
            item = await session.get(BatchItem, item_id)
            if prop is None:
                self._set_status(item, S.failed, error=f"Property {property_id} no longer exists")
                await session.commit()
                return
            item.parsed_data_json = json.dumps(parsed.to_dict(), default=str)
            self._set_status(item, S.parsed)
            self._set_status(item, S.imported)
            await session.commit()

        await notify_quietly(self.notifier, self._imported_payload(scope, item_id, prop))

    # -----------------------------
    # Strategy: progressive
    # -----------------------------
    async def parse_progressive(self, batch_id: int) -> dict[str, Any]:
        """Quick pass now, full pass in the background."""
        scope, pending = await self._start(batch_id, BatchStrategy.progressive)

        quick_results: list[dict[str, Any]] = []
        for item_id, url in pending:
            try:
                quick_results.append(await self._quick_item(item_id, url))
            except Exception as e:
                log.exception("Quick parse failed for item %s (%s)", item_id, url)
                await self._fail(item_id, _error_text(e))
                quick_results.append(_item_result(item_id, url, S.failed, error=_error_text(e)))

        self._spawn(batch_id, self._full_pass(scope))
        return {"started": True, "quick_results": quick_results}

    async def _quick_item(self, item_id: int, url: str) -> dict[str, Any]:
        if not await self._advance(item_id, S.quick_parsing):
            return _item_result(item_id, url, S.failed, error=ITEM_BUSY)

        parser = self.factory.get_parser(url)
        if parser is None:
            await self._fail(item_id, NO_PARSER)
            return _item_result(item_id, url, S.failed, error=NO_PARSER)

        quick = await parser.quick_parse(url)
        data = quick.to_dict()
        if not await self._advance(item_id, S.quick_parsed, quick_data_json=json.dumps(data, default=str)):
            return _item_result(item_id, url, S.failed, error=ITEM_MOVED)
        return _item_result(item_id, url, S.quick_parsed, data=data)

    async def _full_pass(self, scope: _Scope) -> None:
        try:
            async with self.session_maker() as session:
                work = [(i.id, i.source_url) for i in await self._items(session, scope.batch_id, S.quick_parsed)]

            for n, (item_id, url) in enumerate(work):
                if n:
                    await self._sleep(self.full_pass_delay_s)
                try:
                    await self._full_item(item_id, url)
                except Exception as e:
                    log.exception("Full parse failed for item %s (%s)", item_id, url)
                    await self._fail(item_id, _error_text(e))
        finally:
            await self._finish_quietly(scope.batch_id)

    async def _full_item(self, item_id: int, url: str) -> ParsedProperty | None:
        if not await self._advance(item_id, S.full_parsing):
            return None
        parser = self.factory.get_parser(url)
        if parser is None:
            await self._fail(item_id, NO_PARSER)
            return None
        parsed = await parser.parse(url)
        if not await self._advance(item_id, S.parsed, parsed_data_json=json.dumps(parsed.to_dict(), default=str)):
            log.warning("Item %s changed state during its full parse; result dropped", item_id)
            return None
        return parsed

    # -----------------------------
    # Strategy: sequential (exhaustive)
    # -----------------------------
    async def parse_sequential(self, batch_id: int) -> dict[str, Any]:
        scope, pending = await self._start(batch_id, BatchStrategy.exhaustive)

        results: list[dict[str, Any]] = []
        for n, (item_id, url) in enumerate(pending):
            if n:
                await self._sleep(self.item_delay_s)
            try:
                results.append(await self._sequential_item(scope, item_id, url))
            except Exception as e:
                log.exception("Sequential parse failed for item %s (%s)", item_id, url)
                await self._fail(item_id, _error_text(e))
                results.append(_item_result(item_id, url, S.failed, error=_error_text(e)))

        await self._finish(batch_id)
        ok = sum(1 for r in results if r["status"] == S.parsed.value)
        return {
            "results": results,
            "summary": {"total": len(results), "successful": ok, "failed": len(results) - ok},
        }

    async def _sequential_item(self, scope: _Scope, item_id: int, url: str) -> dict[str, Any]:
        if not await self._advance(item_id, S.full_parsing):
            return _item_result(item_id, url, S.failed, error=ITEM_BUSY)

        parser = self.factory.get_parser(url)
        if parser is None:
            await self._fail(item_id, NO_PARSER)
            return _item_result(item_id, url, S.failed, error=NO_PARSER)

        parsed = await parser.parse(url)
        data = parsed.to_dict()

        async with self.session_maker() as session:
            item = await session.get(BatchItem, item_id)
            dup = await self.duplicates.check(session, scope.owner_id, scope.collection_id, parsed)
            item.parsed_data_json = json.dumps(data, default=str)
            if dup.is_duplicate:
                error = f"Duplicate: {dup.reason}"
                item.is_duplicate = True
                self._set_status(item, S.failed, error=error)
                await session.commit()
                return _item_result(item_id, url, S.failed, data=data, error=error, is_duplicate=True)
            self._set_status(item, S.parsed)
            await session.commit()

        return _item_result(item_id, url, S.parsed, data=data)

    # -----------------------------
    # Import
    # -----------------------------
    async def import_selected(self, batch_id: int, selections: Iterable[dict[str, Any]]) -> dict[str, Any]:
        async with self.session_maker() as session:
            batch = await self._load_batch(session, batch_id)
            scope = _Scope(batch.id, batch.owner_id, batch.collection_id)

        results: list[dict[str, Any]] = []
        for sel in selections or []:
            item_id = sel.get("item_id")
            try:
                results.append(await self._import_one(scope, item_id, _clean_overrides(sel.get("overrides"))))
            except Exception as e:
                log.exception("Import failed for item %s", item_id)
                results.append({"item_id": item_id, "success": False, "error": _error_text(e)})

        async with self.session_maker() as session:
            batch = await self._load_batch(session, batch_id)
            await self._refresh_counts(session, batch)
            await session.commit()

        ok = sum(1 for r in results if r["success"])
        log.info("Batch %s: imported %d/%d selected items", batch_id, ok, len(results))
        return {
            "import_results": results,
            "summary": {"total": len(results), "successful": ok, "failed": len(results) - ok},
        }

    async def _import_one(self, scope: _Scope, item_id: Any, overrides: dict[str, Any]) -> dict[str, Any]:
        async with self.session_maker() as session:
            item = await session.get(BatchItem, item_id) if isinstance(item_id, int) else None
            if item is None or item.batch_id != scope.batch_id or not item.parsed_data_json:
                return {"item_id": item_id, "success": False, "error": ITEM_NOT_PARSED}

            parsed = ParsedProperty.from_dict(json.loads(item.parsed_data_json))
            if item.parse_status == S.failed and item.is_duplicate:
                # flagged while parsing; report why instead of "not parsed"
                dup = await self.duplicates.check(session, scope.owner_id, scope.collection_id, parsed)
                return {
                    "item_id": item_id,
                    "success": False,
                    "error": item.parse_error,
                    "is_duplicate": True,
                    "existing_property_id": dup.existing_property_id,
                }
            if item.parse_status != S.parsed:
                return {"item_id": item_id, "success": False, "error": ITEM_NOT_PARSED}

            dup = await self.duplicates.check(session, scope.owner_id, scope.collection_id, parsed)
            if dup.is_duplicate:
                error = f"Duplicate: {dup.reason}"
                if await self._swap_status(session, item.id, S.parsed, S.failed, parse_error=error, is_duplicate=True):
                    await session.commit()
                return {
                    "item_id": item_id,
                    "success": False,
                    "error": error,
                    "is_duplicate": True,
                    "existing_property_id": dup.existing_property_id,
                }

            prop = await PropertyRepository(session).commit_parsed(
                owner_id=scope.owner_id,
                collection_id=scope.collection_id,
                parsed=parsed,
                overrides=overrides,
            )
            # a concurrent import of the same item loses here and its property is rolled back
            if not await self._swap_status(session, item.id, S.parsed, S.imported, committed_property_id=prop.id):
                await session.rollback()
                return {"item_id": item_id, "success": False, "error": ITEM_NOT_PARSED}
            await session.commit()

        await notify_quietly(self.notifier, self._imported_payload(scope, item_id, prop))
        return {"item_id": item_id, "success": True, "property_id": prop.id}

    # -----------------------------
    # Background task bookkeeping
    # -----------------------------
    def _spawn(self, batch_id: int, coro: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(coro)
        self._tasks.setdefault(batch_id, set()).add(task)
        task.add_done_callback(lambda t: self._forget(batch_id, t))
        return task

    def _forget(self, batch_id: int, task: asyncio.Task[None]) -> None:
        tasks = self._tasks.get(batch_id)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            self._tasks.pop(batch_id, None)
        if not task.cancelled() and task.exception() is not None:
            log.error("Background pass for batch %s crashed: %r", batch_id, task.exception())

    def background_tasks(self, batch_id: int | None = None) -> list[asyncio.Task[None]]:
        if batch_id is not None:
            return list(self._tasks.get(batch_id, ()))
        return [t for tasks in self._tasks.values() for t in tasks]

    async def wait_for_background(self, batch_id: int | None = None) -> None:
        while tasks := self.background_tasks(batch_id):
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _cancel(self, batch_id: int | None = None) -> None:
        tasks = self.background_tasks(batch_id)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            log.info("Cancelled %d background task(s)%s", len(tasks), f" for batch {batch_id}" if batch_id else "")

    async def shutdown(self) -> None:
        await self._cancel()
        await self.fail_interrupted_items()

    async def fail_interrupted_items(self) -> int:
        """Items a previous process left mid-parse can never finish; fail them and settle their batches."""
        async with self.session_maker() as session:
            stmt = select(BatchItem).where(BatchItem.parse_status.in_(list(IN_FLIGHT)))
            items = list((await session.execute(stmt)).scalars().all())
            for item in items:
                self._set_status(item, S.failed, error=INTERRUPTED)

            for batch_id in {i.batch_id for i in items}:
                batch = await session.get(Batch, batch_id)
                if batch is not None:
                    await self._refresh_counts(session, batch)
                    batch.status = BatchStatus.completed
                    batch.completed_at = datetime.utcnow()
            await session.commit()

        if items:
            log.warning("Marked %d interrupted item(s) as failed", len(items))
        return len(items)

    # -----------------------------
    # Item / batch helpers
    # -----------------------------
    @staticmethod
    def _set_status(item: BatchItem, target: ParseStatus, *, error: str | None = None) -> None:
        ensure_transition(item.parse_status, target)
        log.debug("item %s: %s -> %s", item.id, item.parse_status.value, target.value)
        item.parse_status = target
        if target in PROGRESS:
            item.loading_progress = PROGRESS[target]
        if error is not None:
            item.parse_error = error
        item.updated_at = datetime.utcnow()

    async def _advance(self, item_id: int, target: ParseStatus, **fields: Any) -> bool:
        """
        Compare-and-set one item's status in its own transaction. The UPDATE
        only matches while the item still holds the status we read, so two
        runners racing for the same item cannot both win. False when another
        runner got there first.
        """
        async with self.session_maker() as session:
            current = await session.scalar(select(BatchItem.parse_status).where(BatchItem.id == item_id))
            if current is None or not can_transition(current, target):
                return False
            swapped = await self._swap_status(session, item_id, current, target, **fields)
            await session.commit()
            return swapped

    async def _swap_status(
        self, session: AsyncSession, item_id: int, current: ParseStatus, target: ParseStatus, **fields: Any
    ) -> bool:
        ensure_transition(current, target)
        values = {"parse_status": target, "updated_at": datetime.utcnow(), **fields}
        if target in PROGRESS:
            values["loading_progress"] = PROGRESS[target]
        result = await session.execute(
            update(BatchItem)
            .where(BatchItem.id == item_id, BatchItem.parse_status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        log.debug("item %s: %s -> %s", item_id, current.value, target.value)
        return True

    async def _fail(self, item_id: int, error: str) -> None:
        await self._advance(item_id, S.failed, parse_error=error)

    async def _load_batch(self, session: AsyncSession, batch_id: int) -> Batch:
        batch = await session.get(Batch, batch_id)
        if batch is None:
            raise NotFoundError(f"Batch {batch_id} not found")
        return batch

    async def _items(self, session: AsyncSession, batch_id: int, status: ParseStatus | None = None) -> list[BatchItem]:
        stmt = select(BatchItem).where(BatchItem.batch_id == batch_id)
        if status is not None:
            stmt = stmt.where(BatchItem.parse_status == status)
        return list((await session.execute(stmt.order_by(BatchItem.position.asc()))).scalars().all())

    async def _refresh_counts(self, session: AsyncSession, batch: Batch) -> None:
        rows = (
            await session.execute(
                select(BatchItem.parse_status, func.count(BatchItem.id))
                .where(BatchItem.batch_id == batch.id)
                .group_by(BatchItem.parse_status)
            )
        ).all()
        counts = {status: n for status, n in rows}
        batch.total_count = sum(counts.values())
        batch.success_count = counts.get(S.parsed, 0) + counts.get(S.imported, 0)
        batch.failure_count = counts.get(S.failed, 0)

    async def _start(self, batch_id: int, strategy: BatchStrategy) -> tuple[_Scope, list[tuple[int, str]]]:
        async with self.session_maker() as session:
            batch = await self._load_batch(session, batch_id)
            pending = [(i.id, i.source_url) for i in await self._items(session, batch_id, S.pending)]
            batch.status = BatchStatus.processing
            batch.strategy = strategy
            batch.started_at = batch.started_at or datetime.utcnow()
            batch.completed_at = None
            await session.commit()
            log.info("Batch %s: %s started with %d pending item(s)", batch_id, strategy.value, len(pending))
            return _Scope(batch.id, batch.owner_id, batch.collection_id), pending

    async def _finish(self, batch_id: int) -> None:
        async with self.session_maker() as session:
            batch = await session.get(Batch, batch_id)
            if batch is None:
                return
            await self._refresh_counts(session, batch)
            batch.status = BatchStatus.completed
            batch.completed_at = datetime.utcnow()
            await session.commit()
            log.info(
                "Batch %s completed: %d ok, %d failed of %d",
                batch_id, batch.success_count, batch.failure_count, batch.total_count,
            )

    async def _finish_quietly(self, batch_id: int) -> None:
        # runs in a background task's finally; a cancelled pass leaves the batch as-is
        task = asyncio.current_task()
        if task is not None and task.cancelling():
            return
        try:
            await self._finish(batch_id)
        except Exception:
            log.exception("Could not finalize batch %s", batch_id)

    @staticmethod
    def _imported_payload(scope: _Scope, item_id: int, prop: Property) -> dict[str, Any]:
        return {
            "property_id": prop.id,
            "owner_id": scope.owner_id,
            "collection_id": scope.collection_id,
            "batch_id": scope.batch_id,
            "item_id": item_id,
            "source_url": prop.source_url,
            "address": prop.address_full,
        }
