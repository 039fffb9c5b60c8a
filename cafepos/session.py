"""Use cases behind the POS screen.

Each public coroutine returns an ``Outcome``: domain errors are raised below
this layer and converted here, so the UI branches on a result and shows
``outcome.message`` when ``outcome.notify`` is set. Network failures of
background work (refetch, auto-sync deletes) come back with ``notify=False``.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable

import structlog

from cafepos.api import OrderApi
from cafepos.cart import Cart
from cafepos.config import Settings
from cafepos.constant import MESSAGES, PAYMENT_METHOD_LABELS
from cafepos.errors import ErrorKind, NetworkError, NotFoundError, Outcome, PosError, PrintError, ValidationError
from cafepos.lifecycle import OrderLifecycleController
from cafepos.models import ItemRequest, LineItem, Order, OrderStatus, PaymentMethod, PaymentRequest, Product, Table
from cafepos.persistence import STATUS_PRINT_FAILED, STATUS_PRINTED, PrintJournal
from cafepos.pricing import validate_discount_percentage
from cafepos.printer import PreviewPrintDispatcher, PrintDispatcher
from cafepos.receipts import DocumentKind, PrintableDocument, ReceiptMetadata, render
from cafepos.sync import OrderSync

logger = structlog.get_logger(__name__)


class PosSession:
    """One cashier's working state: selected table, open order and its cart."""

    def __init__(
        self,
        api: OrderApi,
        settings: Settings | None = None,
        printer: PrintDispatcher | None = None,
        journal: PrintJournal | None = None,
        controller: OrderLifecycleController | None = None,
        sync: OrderSync | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.api = api
        self.settings = settings or Settings()
        self.printer = printer or PreviewPrintDispatcher()
        self.journal = journal
        self.controller = controller or OrderLifecycleController()
        self.sync = sync or OrderSync(api)
        self.clock = clock

        self.cart = Cart(
            max_quantity_per_item=self.settings.max_quantity_per_item,
            max_items=self.settings.max_items_per_order,
            max_note_length=self.settings.max_note_length,
        )
        self.catalog: dict[int, Product] = {}
        self.tables: list[Table] = []
        self.table: Table | None = None
        self.order: Order | None = None
        self.last_paid: Order | None = None
        self.last_closed: Order | None = None
        self.cashier_name = self.settings.cashier_name

    def _fail(self, exc: PosError, background: bool = False) -> Outcome:
        notify = not (background and exc.kind is ErrorKind.NETWORK)
        logger.info("use_case_failed", kind=exc.kind.value, error=exc.message, notify=notify, details=exc.details)
        return Outcome.failure(exc, notify=notify)

    def _require_order(self) -> Order:
        if self.order is None or self.order.id is None:
            raise ValidationError(MESSAGES["empty_cart"])
        return self.order

    def _adopt(self, order: Order) -> None:
        """Take the server's view of the open order; a terminal order releases the table."""
        if order.status.is_terminal:
            self.last_closed = order
            self._drop_order()
            return
        self.order = order
        self.cart.load_from_order(order.items, self.catalog)

    def _drop_order(self) -> None:
        if self.order is not None and self.order.id is not None:
            self.sync.forget(self.order.id)
        self.order = None
        self.cart.clear()

    async def _resolve_item_id(self, order: Order, product_id: int) -> int:
        line = order.find_item(product_id)
        if line is None:
            raise NotFoundError("Item is not in the order", order_id=order.id, product_id=product_id)
        if line.item_id is not None:
            return line.item_id
        # The add response was superseded before its row id was adopted.
        refreshed = await self.sync.submit(order.id, self.api.get_order, order.id)
        server_line = refreshed.value.find_item(product_id)
        if server_line is None or server_line.item_id is None:
            raise NotFoundError("Item is not in the order", order_id=order.id, product_id=product_id)
        self.cart.set_item_id(product_id, server_line.item_id)
        return server_line.item_id

    async def load_catalog(self) -> Outcome[list[Product]]:
        try:
            products = await self.sync.run(self.api.get_products)
            tables = await self.sync.run(self.api.get_tables)
        except PosError as exc:
            return self._fail(exc)
        self.catalog = {product.product_id: product for product in products}
        self.tables = tables
        logger.info("catalog_loaded", products=len(products), tables=len(tables))
        return Outcome.success(products, MESSAGES["catalog_loaded"], notify=False)

    async def open_table(self, table: Table) -> Outcome[Order]:
        """Select a table and load its open order, if it has one."""
        self._drop_order()
        self.last_closed = None
        self.table = table
        try:
            orders = await self.sync.run(self.api.get_orders)
            open_order = next(
                (
                    order
                    for order in orders
                    if order.table_id == table.table_id and order.status is OrderStatus.ORDERING and order.id is not None
                ),
                None,
            )
            if open_order is None:
                return Outcome.success(None, notify=False)
            order = await self.sync.run(self.api.get_order, open_order.id)
        except PosError as exc:
            return self._fail(exc)
        self._adopt(order)
        logger.info("table_opened", table_id=table.table_id, order_id=order.id, items=len(order.items))
        return Outcome.success(self.order, notify=False)

    async def add_product(self, product: Product) -> Outcome[Order]:
        """Add one unit of ``product``, creating the table's order on first use."""
        if self.table is None:
            return self._fail(ValidationError(MESSAGES["no_table"]))

        cart_snapshot = self.cart.items()
        order_snapshot = self.order
        events: list[str] = []
        try:
            self.cart.add_item(product)
            if self.order is None:
                self.order = await self.sync.run(self.api.create_order, self.table.table_id)
                order_snapshot = self.order
                events.append("order_created")
                logger.info("order_created", order_id=self.order.id, table_id=self.table.table_id)
            order = self.order
            self.order = self.controller.add_item(
                order,
                LineItem(product_id=product.product_id, product_name=product.name, unit_price=product.unit_price),
            )
            submitted = await self.sync.submit(
                order.id,
                self.api.add_order_item,
                order.id,
                ItemRequest(product_id=product.product_id, quantity=1),
            )
        except PosError as exc:
            self.cart.restore(cart_snapshot)
            self.order = order_snapshot
            return self._fail(exc)

        if submitted.latest:
            self._adopt(submitted.value)
        events.append("item_added")
        return Outcome.success(self.order, MESSAGES["item_added"], events=tuple(events))

    async def set_quantity(self, product_id: int, quantity: int) -> Outcome[Order]:
        """Set a line's quantity; zero or less removes it."""
        if isinstance(quantity, int) and not isinstance(quantity, bool) and quantity <= 0:
            return await self.remove_item(product_id)

        cart_snapshot = self.cart.items()
        order_snapshot = self.order
        try:
            order = self._require_order()
            self.controller.ensure_mutable(order)
            line = self.cart.update_quantity(product_id, quantity)
            item_id = await self._resolve_item_id(order, product_id)
            self.order = self.controller.update_item(order, product_id, quantity=quantity).order
            submitted = await self.sync.submit(
                order.id,
                self.api.update_order_item,
                order.id,
                item_id,
                quantity,
                line.notes if line is not None else "",
            )
        except PosError as exc:
            self.cart.restore(cart_snapshot)
            self.order = order_snapshot
            return self._fail(exc)

        if submitted.latest:
            self._adopt(submitted.value)
        return Outcome.success(self.order, MESSAGES["order_updated"])

    async def update_notes(self, product_id: int, notes: str) -> Outcome[Order]:
        cart_snapshot = self.cart.items()
        order_snapshot = self.order
        try:
            order = self._require_order()
            self.controller.ensure_mutable(order)
            line = self.cart.update_notes(product_id, notes)
            item_id = await self._resolve_item_id(order, product_id)
            self.order = self.controller.update_item(order, product_id, notes=line.notes).order
            submitted = await self.sync.submit(
                order.id,
                self.api.update_order_item,
                order.id,
                item_id,
                line.quantity,
                line.notes,
            )
        except PosError as exc:
            self.cart.restore(cart_snapshot)
            self.order = order_snapshot
            return self._fail(exc)

        if submitted.latest:
            self._adopt(submitted.value)
        return Outcome.success(self.order, MESSAGES["order_updated"])

    async def remove_item(self, product_id: int) -> Outcome[Order]:
        """Remove a line. Removing the last one cancels the order and frees the table."""
        cart_snapshot = self.cart.items()
        order_snapshot = self.order
        try:
            order = self._require_order()
            self.controller.ensure_mutable(order)
            item_id = await self._resolve_item_id(order, product_id)
            transition = self.controller.remove_item(order, product_id)
        except PosError as exc:
            return self._fail(exc)

        self.cart.remove_item(product_id)
        self.order = transition.order
        cancelled = transition.auto_cancelled
        try:
            submitted = await self.sync.submit(order.id, self.api.delete_order_item, order.id, item_id)
        except NetworkError as exc:
            # The next refetch reconciles; the local removal stands.
            logger.warning("item_delete_not_synced", order_id=order.id, product_id=product_id, error=exc.message)
            if cancelled:
                self.last_closed = transition.order
                self._drop_order()
            return self._fail(exc, background=True)
        except PosError as exc:
            self.cart.restore(cart_snapshot)
            self.order = order_snapshot
            return self._fail(exc)

        removal = submitted.value
        cancelled = cancelled or removal.order_cancelled
        if cancelled:
            logger.info("table_cleared", order_id=order.id, table_id=order.table_id)
            cancelled_order = transition.order if transition.auto_cancelled else removal.order
            self.last_closed = cancelled_order
            self._drop_order()
            return Outcome.success(cancelled_order, MESSAGES["table_cleared"], events=("order_cancelled",))

        if submitted.latest:
            self._adopt(removal.order)
        return Outcome.success(self.order, MESSAGES["item_removed"])

    async def update_status(self, status: OrderStatus) -> Outcome[Order]:
        """Request an explicit status; repeating the current one succeeds quietly.

        Once an order is closed the table has no open order, so a repeat is
        checked against the order that was just closed.
        """
        try:
            if self.order is None and self.last_closed is not None:
                order = self.last_closed
            else:
                order = self._require_order()
            change = self.controller.request_status(order, OrderStatus(status))
            if change.already_in_status:
                return Outcome.success(order, MESSAGES["status_updated"], notify=False, events=("already_in_status",))
            submitted = await self.sync.submit(order.id, self.api.update_order_status, order.id, OrderStatus(status))
        except ValueError:
            return self._fail(ValidationError("Unknown order status", status=str(status)))
        except PosError as exc:
            return self._fail(exc)

        server_change = submitted.value
        updated = server_change.order if submitted.latest else change.order
        self._adopt(updated)
        if server_change.already_in_status:
            return Outcome.success(updated, MESSAGES["status_updated"], notify=False, events=("already_in_status",))
        return Outcome.success(updated, MESSAGES["status_updated"], events=("status_changed",))

    async def checkout(self, method: PaymentMethod | str | None, discount_percentage: object = None) -> Outcome[Order]:
        """Pay the open order. On any failure the order stays open and unchanged."""
        try:
            order = self._require_order()
            pct = validate_discount_percentage(discount_percentage)
            candidate = self.controller.checkout(order, method, pct, self.clock())
            submitted = await self.sync.submit(
                order.id,
                self.api.create_payment,
                PaymentRequest(
                    order_id=order.id,
                    payment_type=candidate.payment_method,
                    discount_percentage=pct if pct > 0 else None,
                ),
            )
        except PosError as exc:
            return self._fail(exc)

        paid = self.controller.reconcile_payment(candidate, submitted.value)
        self.last_paid = paid
        self.last_closed = paid
        self._drop_order()
        logger.info(
            "order_paid",
            order_id=paid.id,
            method=paid.payment_method.value,
            total=paid.total_amount.amount,
            discount_percentage=str(paid.discount_percentage or 0),
        )
        return Outcome.success(paid, MESSAGES["payment_success"], events=("order_paid",))

    def _document_target(self, kind: DocumentKind, order: Order | None) -> Order:
        if order is not None:
            return order
        if kind in (DocumentKind.CUSTOMER_RECEIPT, DocumentKind.REPRINT):
            if self.last_paid is None:
                raise ValidationError(MESSAGES["no_paid_order"])
            return self.last_paid
        if self.order is None or not self.order.items:
            raise ValidationError(MESSAGES["empty_cart"])
        return self.order

    async def print_document(
        self,
        kind: DocumentKind | str,
        copies: int = 1,
        order: Order | None = None,
    ) -> Outcome[PrintableDocument]:
        """Render and print; a print failure never touches order or payment state."""
        try:
            kind = DocumentKind(kind)
        except ValueError:
            return self._fail(ValidationError("Unknown document kind", kind=str(kind)))
        try:
            target = self._document_target(kind, order)
            label = None
            if target.payment_method is not None:
                label = PAYMENT_METHOD_LABELS.get(target.payment_method.value)
            metadata = ReceiptMetadata(
                cashier_name=self.cashier_name,
                printed_at=self.clock(),
                payment_method_label=label,
                discount_percentage=target.discount_percentage,
                copies=copies,
            )
            document = render(target, kind, metadata)
        except PosError as exc:
            return self._fail(exc)
        return await self._dispatch(target, kind, metadata, document)

    async def _dispatch(
        self,
        order: Order,
        kind: DocumentKind,
        metadata: ReceiptMetadata,
        document: PrintableDocument,
        job_id: str | None = None,
    ) -> Outcome[PrintableDocument]:
        if job_id is None and self.journal is not None:
            job_id = self.journal.record(order, kind, metadata)
        try:
            await asyncio.to_thread(self.printer.dispatch, document)
        except PrintError as exc:
            logger.warning("print_failed", job_id=job_id, order_id=order.id, kind=kind.value, error=exc.message)
            if self.journal is not None and job_id is not None:
                self.journal.mark(job_id, STATUS_PRINT_FAILED, error=exc.message)
            return Outcome.failure(PrintError(MESSAGES["print_failed"], cause=exc.message, job_id=job_id))

        if self.journal is not None and job_id is not None:
            self.journal.mark(job_id, STATUS_PRINTED)
        logger.info("printed", job_id=job_id, order_id=order.id, kind=kind.value, copies=metadata.copies)
        return Outcome.success(document, MESSAGES["printed"])

    async def retry_failed_prints(self) -> Outcome[int]:
        """Print journaled failures again from their stored snapshot; returns how many succeeded."""
        if self.journal is None:
            return Outcome.success(0, notify=False)
        printed = 0
        failures: list[PosError] = []
        for job in self.journal.failed():
            try:
                order = job.order()
                metadata = job.metadata()
                document = render(order, job.kind, metadata)
            except PosError as exc:
                logger.warning("print_retry_unrenderable", job_id=job.job_id, error=exc.message)
                failures.append(exc)
                continue
            outcome = await self._dispatch(order, job.kind, metadata, document, job_id=job.job_id)
            if outcome.ok:
                printed += 1
            else:
                failures.append(outcome.error)
        if failures:
            return Outcome.failure(failures[0])
        return Outcome.success(printed, MESSAGES["printed"] if printed else "", notify=bool(printed))

    async def refresh(self) -> Outcome[Order]:
        """Background refetch of the open order; stale or failed fetches change nothing."""
        if self.order is None or self.order.id is None:
            return Outcome.success(None, notify=False)
        order_id = self.order.id
        fetched = await self.sync.fetch(order_id)
        if fetched is None or self.order is None or self.order.id != order_id:
            return Outcome.success(self.order, notify=False)
        if fetched.status.is_terminal:
            logger.info("open_order_closed_remotely", order_id=order_id, status=fetched.status.value)
        self._adopt(fetched)
        return Outcome.success(self.order, notify=False)
