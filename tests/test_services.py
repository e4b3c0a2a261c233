from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest import IsolatedAsyncioTestCase

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ledger.models import Base
from ledger.schemas import (
    CustomerCreate,
    CustomerUpdate,
    LedgerSettingsUpdate,
    PaymentCreate,
    SaleCreate,
    SaleFilter,
    SaleStatus,
    SaleUpdate,
)
from ledger.services import (
    create_customer,
    create_sale,
    customer_overview,
    delete_customer,
    delete_sale,
    get_sale,
    global_search,
    list_activity,
    list_customers,
    list_sales,
    load_ledger_settings,
    record_payment,
    sync_installments,
    update_customer,
    update_ledger_settings,
    update_sale,
)
from ledger.services import store
from ledger.services.errors import (
    CustomerNotFoundError,
    PaymentRejectedError,
    SaleNotFoundError,
    ValidationFailed,
)

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class ServiceTestCase(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.session = async_sessionmaker(self.engine, expire_on_commit=False)()

    async def asyncTearDown(self) -> None:
        await self.session.close()
        await self.engine.dispose()

    async def add_customer(self, name: str = "Ali Hassan", phone: str = "07701234567"):
        return await create_customer(
            self.session, CustomerCreate(name=name, phone=phone, address="Baghdad, Karrada")
        )

    async def add_sale(self, customer_id: str, *, total: str = "1000", count: int = 3, now=NOW):
        return await create_sale(
            self.session,
            SaleCreate(
                customer_id=customer_id,
                product="Samsung fridge",
                total_amount=Decimal(total),
                installments_count=count,
            ),
            now=now,
        )


class CustomerServiceTests(ServiceTestCase):
    async def test_create_customer_logs_activity(self) -> None:
        customer = await self.add_customer()

        self.assertTrue(customer.id.startswith("c"))
        activity = await list_activity(self.session)
        self.assertEqual(activity[0].text, "New customer added: Ali Hassan")
        self.assertEqual(activity[0].meta, {"customerId": customer.id})

    async def test_create_customer_requires_name(self) -> None:
        with self.assertRaises(ValidationFailed):
            await create_customer(self.session, CustomerCreate(name="   "))
        self.assertEqual(await list_customers(self.session), [])

    async def test_search_matches_name_address_and_phone(self) -> None:
        await self.add_customer("Ali Hassan", "07701234567")
        await self.add_customer("Sara Karim", "07809876543")

        self.assertEqual(len(await list_customers(self.session, query="ali")), 1)
        self.assertEqual(len(await list_customers(self.session, query="KARRADA")), 2)
        self.assertEqual(
            [c.name for c in await list_customers(self.session, query="0780")], ["Sara Karim"]
        )

    async def test_update_unknown_customer(self) -> None:
        with self.assertRaises(CustomerNotFoundError):
            await update_customer(self.session, "missing", CustomerUpdate(name="X"))

    async def test_update_keeps_unset_fields(self) -> None:
        customer = await self.add_customer()
        updated = await update_customer(self.session, customer.id, CustomerUpdate(notes="pays cash"))
        self.assertEqual(updated.notes, "pays cash")
        self.assertEqual(updated.phone, customer.phone)

    async def test_delete_customer_cascades_to_sales(self) -> None:
        ali = await self.add_customer("Ali")
        sara = await self.add_customer("Sara")
        await self.add_sale(ali.id)
        await self.add_sale(ali.id)
        kept = await self.add_sale(sara.id)

        removed = await delete_customer(self.session, ali.id)

        self.assertEqual(removed, 2)
        self.assertEqual([s.id for s in await list_sales(self.session)], [kept.id])
        self.assertEqual([c.id for c in await list_customers(self.session)], [sara.id])

    async def test_overview_totals(self) -> None:
        customer = await self.add_customer()
        sale = await self.add_sale(customer.id)
        await record_payment(self.session, sale.id, PaymentCreate(amount=Decimal("400")), now=NOW)

        overview = await customer_overview(self.session, now=NOW)

        self.assertEqual(overview[0].sales_count, 1)
        self.assertEqual(overview[0].paid_amount, Decimal("400"))
        self.assertEqual(overview[0].remaining_amount, Decimal("600"))


class SaleServiceTests(ServiceTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.customer = await self.add_customer()

    async def test_create_sale_builds_schedule_and_contract(self) -> None:
        sale = await self.add_sale(self.customer.id)

        self.assertEqual(sale.id, "SALE-20261019-0001")
        self.assertEqual(sale.customer_name, "Ali Hassan")
        self.assertEqual([i.amount for i in sale.installments_schedule], [334, 333, 333])
        self.assertIn("Contract No.: SALE-20261019-0001", sale.contract_text)
        self.assertIn("1,000 IQD", sale.contract_text)

    async def test_sale_ids_are_sequenced_per_day(self) -> None:
        first = await self.add_sale(self.customer.id)
        second = await self.add_sale(self.customer.id)
        next_day = await self.add_sale(self.customer.id, now=NOW + timedelta(days=1))

        self.assertEqual(first.id, "SALE-20261019-0001")
        self.assertEqual(second.id, "SALE-20261019-0002")
        self.assertEqual(next_day.id, "SALE-20261020-0001")
        self.assertEqual(
            [s.id for s in await list_sales(self.session)],
            [next_day.id, second.id, first.id],
        )

    async def test_supplied_contract_text_is_kept(self) -> None:
        sale = await create_sale(
            self.session,
            SaleCreate(
                customer_id=self.customer.id,
                product="Oven",
                total_amount=Decimal("500"),
                contract_text="Agreed by phone.",
            ),
            now=NOW,
        )
        self.assertEqual(sale.contract_text, "Agreed by phone.")
        self.assertEqual(sale.installments_schedule, [])

    async def test_create_sale_for_unknown_customer(self) -> None:
        with self.assertRaises(CustomerNotFoundError):
            await self.add_sale("missing")
        self.assertEqual(await list_sales(self.session), [])

    async def test_create_sale_rejects_small_amount(self) -> None:
        with self.assertRaises(ValidationFailed):
            await self.add_sale(self.customer.id, total="0")

    async def test_payment_updates_schedule(self) -> None:
        sale = await self.add_sale(self.customer.id)

        updated = await record_payment(
            self.session, sale.id, PaymentCreate(amount=Decimal("500")), now=NOW
        )

        self.assertEqual(updated.paid_amount, Decimal("500"))
        self.assertEqual(updated.payments[0].note, "Installment 1")
        schedule = updated.installments_schedule
        self.assertEqual([i.paid for i in schedule], [True, False, False])
        self.assertEqual([i.amount for i in schedule], [334, 167, 333])

        stored = await get_sale(self.session, sale.id)
        self.assertEqual(stored.model_dump(), updated.model_dump())
        activity = await list_activity(self.session)
        self.assertTrue(activity[0].text.startswith("Payment received: 500 IQD"))

    async def test_paid_amount_tracks_sum_of_payments(self) -> None:
        sale = await self.add_sale(self.customer.id)
        for amount in ("100", "250", "50"):
            sale = await record_payment(
                self.session, sale.id, PaymentCreate(amount=Decimal(amount), note="cash"), now=NOW
            )
        self.assertEqual(sale.paid_amount, sum(p.amount for p in sale.payments))
        self.assertEqual(sale.paid_amount, Decimal("400"))

    async def test_overpayment_is_rejected_without_changes(self) -> None:
        sale = await self.add_sale(self.customer.id)
        await record_payment(self.session, sale.id, PaymentCreate(amount=Decimal("900")), now=NOW)
        before = await get_sale(self.session, sale.id)

        with self.assertRaises(PaymentRejectedError):
            await record_payment(
                self.session, sale.id, PaymentCreate(amount=Decimal("101")), now=NOW
            )

        after = await get_sale(self.session, sale.id)
        self.assertEqual(after.model_dump(), before.model_dump())

    async def test_non_positive_payment_is_rejected(self) -> None:
        sale = await self.add_sale(self.customer.id)
        with self.assertRaises(PaymentRejectedError):
            await record_payment(
                self.session, sale.id, PaymentCreate.model_construct(amount=Decimal("0"), note=None)
            )

    async def test_payment_on_unknown_sale(self) -> None:
        with self.assertRaises(SaleNotFoundError):
            await record_payment(self.session, "SALE-X", PaymentCreate(amount=Decimal("1")))

    async def test_raising_total_reopens_completed_sale(self) -> None:
        sale = await self.add_sale(self.customer.id, total="300", count=0)
        await record_payment(self.session, sale.id, PaymentCreate(amount=Decimal("300")), now=NOW)

        updated = await update_sale(self.session, sale.id, SaleUpdate(total_amount=Decimal("400")))

        self.assertFalse(updated.is_completed)
        self.assertEqual(updated.remaining_amount, Decimal("100"))

    async def test_update_sale_validates_amount(self) -> None:
        sale = await self.add_sale(self.customer.id)
        with self.assertRaises(ValidationFailed):
            await update_sale(self.session, sale.id, SaleUpdate(total_amount=Decimal("0")))

    async def test_delete_sale(self) -> None:
        sale = await self.add_sale(self.customer.id)
        await delete_sale(self.session, sale.id)
        self.assertIsNone(await get_sale(self.session, sale.id))
        with self.assertRaises(SaleNotFoundError):
            await delete_sale(self.session, sale.id)

    async def test_list_sales_filters(self) -> None:
        old = await self.add_sale(self.customer.id, now=NOW - timedelta(days=60))
        recent = await self.add_sale(self.customer.id, total="5000", now=NOW)

        late = await list_sales(self.session, SaleFilter(status=SaleStatus.LATE), now=NOW)
        self.assertEqual([s.id for s in late], [old.id])

        by_amount = await list_sales(
            self.session, SaleFilter(amount_min=Decimal("2000")), now=NOW
        )
        self.assertEqual([s.id for s in by_amount], [recent.id])

        whole_day = await list_sales(
            self.session,
            SaleFilter(date_to=datetime(2026, 10, 19, tzinfo=timezone.utc)),
            now=NOW,
        )
        self.assertEqual({s.id for s in whole_day}, {old.id, recent.id})

        by_query = await list_sales(self.session, SaleFilter(query="fridge"), now=NOW)
        self.assertEqual(len(by_query), 2)

    async def test_sync_installments_repairs_stale_schedules(self) -> None:
        sale = await self.add_sale(self.customer.id)
        await record_payment(self.session, sale.id, PaymentCreate(amount=Decimal("500")), now=NOW)
        self.assertFalse(await sync_installments(self.session))

        sales = await store.load_sales(self.session)
        stale = sales[0].model_copy(update={"installments_schedule": sale.installments_schedule})
        await store.save_sales(self.session, [stale])
        await self.session.commit()

        self.assertTrue(await sync_installments(self.session))
        repaired = await get_sale(self.session, sale.id)
        self.assertEqual([i.amount for i in repaired.installments_schedule], [334, 167, 333])


class SettingsAndSearchTests(ServiceTestCase):
    async def test_settings_update_merges(self) -> None:
        updated = await update_ledger_settings(
            self.session, LedgerSettingsUpdate(late_days=15, dark_mode=True)
        )
        self.assertEqual(updated.late_days, 15)

        reloaded = await load_ledger_settings(self.session)
        self.assertTrue(reloaded.dark_mode)
        self.assertEqual(reloaded.items_per_page, 20)
        self.assertEqual(reloaded.date_format, "en-GB")

    async def test_global_search(self) -> None:
        customer = await self.add_customer("Ali Hassan")
        await self.add_sale(customer.id)

        results = await global_search(self.session, "fridge")
        self.assertEqual(len(results.sales), 1)
        self.assertEqual(results.customers, [])

        results = await global_search(self.session, "ali")
        self.assertEqual(len(results.customers), 1)
        self.assertEqual(len(results.sales), 1)

        self.assertTrue((await global_search(self.session, "  ")).is_empty)
