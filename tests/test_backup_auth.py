from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase
from unittest.mock import patch

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ledger.models import Base
from ledger.schemas import (
    BackupDocument,
    Customer,
    CustomerCreate,
    LedgerSettingsUpdate,
    PaymentCreate,
    SaleCreate,
)
from ledger.services import (
    change_password,
    clear_all_data,
    create_backup,
    create_customer,
    create_first_user,
    create_sale,
    ensure_default_user,
    export_backup,
    export_csv,
    get_active_session,
    has_users,
    import_backup,
    list_backups,
    list_customers,
    list_sales,
    login,
    logout,
    record_payment,
    restore_backup,
    storage_usage,
    update_ledger_settings,
)
from ledger.services import store
from ledger.services.auth import InvalidCredentialsError, SetupError
from ledger.services.errors import BackupNotFoundError

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class StoreBackedTestCase(IsolatedAsyncioTestCase):
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


class BackupServiceTests(StoreBackedTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.customer = await create_customer(
            self.session, CustomerCreate(name='Ali "the trader"', phone="0770", address="Basra")
        )
        self.sale = await create_sale(
            self.session,
            SaleCreate(
                customer_id=self.customer.id,
                product="Air conditioner",
                total_amount=Decimal("1200"),
                installments_count=3,
            ),
            now=NOW,
        )
        await record_payment(
            self.session, self.sale.id, PaymentCreate(amount=Decimal("450")), now=NOW
        )

    async def test_export_document(self) -> None:
        document = await export_backup(self.session, now=NOW)
        payload = document.model_dump(mode="json", by_alias=True)

        self.assertEqual(payload["version"], "1.0")
        self.assertEqual(len(payload["customers"]), 1)
        self.assertEqual(payload["sales"][0]["paidAmount"], 450)
        self.assertIn("exportDate", payload)

    async def test_import_with_customers_only_leaves_sales_untouched(self) -> None:
        document = BackupDocument.model_validate(
            {"customers": [{"id": "c9", "name": "Imported"}]}
        )

        result = await import_backup(self.session, document)

        self.assertEqual(result.customers_imported, 1)
        self.assertIsNone(result.sales_imported)
        self.assertEqual([c.id for c in await list_customers(self.session)], ["c9"])
        self.assertEqual([s.id for s in await list_sales(self.session)], [self.sale.id])

    async def test_import_resyncs_sales(self) -> None:
        exported = (await export_backup(self.session, now=NOW)).model_dump(mode="json", by_alias=True)
        for installment in exported["sales"][0]["installmentsSchedule"]:
            installment["paid"] = False
            installment["amount"] = installment["originalAmount"]

        await import_backup(self.session, BackupDocument.model_validate({"sales": exported["sales"]}))

        sale = (await list_sales(self.session))[0]
        self.assertEqual([i.paid for i in sale.installments_schedule], [True, False, False])
        self.assertEqual(sale.installments_schedule[1].amount, Decimal("350"))

    async def test_csv_export(self) -> None:
        content = await export_csv(self.session)

        self.assertTrue(content.startswith("\ufeff"))
        lines = content.lstrip("\ufeff").splitlines()
        self.assertEqual(lines[0], '"Customers"')
        self.assertEqual(lines[2], '"Ali ""the trader""","0770","Basra"')
        self.assertIn('"Sales"', lines)
        self.assertTrue(any(line.startswith('"Air conditioner","Ali ""the trader""",1200,450,750,') for line in lines))

    async def test_snapshot_and_restore(self) -> None:
        info = await create_backup(self.session, now=NOW)
        self.assertTrue(info.key.startswith(store.MANUAL_BACKUP_PREFIX))

        await clear_all_data(self.session)
        self.assertEqual(await list_sales(self.session), [])

        await restore_backup(self.session, info.key)

        self.assertEqual([s.id for s in await list_sales(self.session)], [self.sale.id])
        self.assertEqual(len(await list_customers(self.session)), 1)
        backups = await list_backups(self.session)
        self.assertEqual([b.key for b in backups], [info.key])
        self.assertEqual(backups[0].type, "manual")

    async def test_restore_unknown_backup(self) -> None:
        with self.assertRaises(BackupNotFoundError):
            await restore_backup(self.session, f"{store.MANUAL_BACKUP_PREFIX}1")
        with self.assertRaises(BackupNotFoundError):
            await restore_backup(self.session, store.CUSTOMERS_KEY)

    async def test_automatic_backup_needs_setting_and_keeps_latest(self) -> None:
        self.assertIsNone(await create_backup(self.session, automatic=True, now=NOW))

        await update_ledger_settings(self.session, LedgerSettingsUpdate(auto_backup=True))
        with patch(
            "ledger.services.backup.get_settings",
            return_value=SimpleNamespace(auto_backup_retention=2),
        ):
            for offset in range(3):
                await create_backup(
                    self.session, automatic=True, now=NOW + timedelta(days=offset)
                )

        keys = await store.list_keys(self.session, store.AUTO_BACKUP_PREFIX)
        self.assertEqual(
            keys,
            [f"{store.AUTO_BACKUP_PREFIX}2026-10-20", f"{store.AUTO_BACKUP_PREFIX}2026-10-21"],
        )

    async def test_clear_keeps_settings(self) -> None:
        await update_ledger_settings(self.session, LedgerSettingsUpdate(late_days=12))
        await clear_all_data(self.session)

        usage = await storage_usage(self.session)
        self.assertEqual(usage.customers, 0)
        self.assertEqual(usage.sale_count, 0)
        self.assertEqual(usage.activity_count, 0)
        self.assertGreater(usage.settings, 0)
        self.assertEqual(usage.total, usage.settings)


class AuthServiceTests(StoreBackedTestCase):
    async def test_default_user_created_once(self) -> None:
        self.assertFalse(await has_users(self.session))
        self.assertTrue(await ensure_default_user(self.session))
        self.assertFalse(await ensure_default_user(self.session))

        response = await login(self.session, "ADMIN", "admin", now=NOW)
        self.assertEqual(response.username, "admin")
        self.assertEqual(response.expires_in, 12 * 60 * 60)

    async def test_first_user_rules(self) -> None:
        with self.assertRaises(SetupError):
            await create_first_user(self.session, "owner", "abc", "abc")
        with self.assertRaises(SetupError):
            await create_first_user(self.session, "owner", "secret", "secrets")

        await create_first_user(self.session, "owner", "secret", "secret")

        with self.assertRaises(SetupError):
            await create_first_user(self.session, "other", "secret", "secret")

    async def test_wrong_password(self) -> None:
        await create_first_user(self.session, "owner", "secret", "secret")
        with self.assertRaises(InvalidCredentialsError):
            await login(self.session, "owner", "nope")

    async def test_non_ascii_passwords(self) -> None:
        await create_first_user(self.session, "owner", "كلمةسر", "كلمةسر")

        response = await login(self.session, "owner", "كلمةسر", now=NOW)
        self.assertEqual(response.username, "owner")
        with self.assertRaises(InvalidCredentialsError):
            await login(self.session, "owner", "كلمة")
        with self.assertRaises(InvalidCredentialsError):
            await change_password(self.session, "owner", "sécret", "newpass")

        await change_password(self.session, "owner", "كلمةسر", "mot-de-passe-é")
        await login(self.session, "owner", "mot-de-passe-é")

    async def test_session_expiry(self) -> None:
        await create_first_user(self.session, "owner", "secret", "secret")
        response = await login(self.session, "owner", "secret", now=NOW)

        active = await get_active_session(self.session, now=NOW + timedelta(hours=11))
        self.assertEqual(active.token, response.access_token)

        self.assertIsNone(await get_active_session(self.session, now=NOW + timedelta(hours=13)))
        self.assertIsNone(await store.read_raw(self.session, store.SESSION_KEY))

    async def test_remember_me_extends_session(self) -> None:
        await create_first_user(self.session, "owner", "secret", "secret")
        await login(self.session, "owner", "secret", remember=True, now=NOW)

        active = await get_active_session(self.session, now=NOW + timedelta(days=29))
        self.assertIsNotNone(active)

    async def test_logout_and_password_change(self) -> None:
        await create_first_user(self.session, "owner", "secret", "secret")
        await login(self.session, "owner", "secret", now=NOW)
        await logout(self.session)
        self.assertIsNone(await get_active_session(self.session))

        with self.assertRaises(InvalidCredentialsError):
            await change_password(self.session, "owner", "wrong", "newpass")
        with self.assertRaises(SetupError):
            await change_password(self.session, "owner", "secret", "new")

        await change_password(self.session, "owner", "secret", "newpass")
        await login(self.session, "owner", "newpass")


class LegacyDocumentTests(StoreBackedTestCase):
    async def test_import_document_written_by_the_browser_client(self) -> None:
        document = BackupDocument.model_validate(
            {
                "customers": [{"id": "c1", "name": "Ali", "category": "vip"}],
                "sales": [
                    {
                        "id": "SALE-20250101-0001",
                        "customerId": "c1",
                        "customerName": "Ali",
                        "product": "TV",
                        "totalAmount": 900,
                        "paidAmount": 300,
                        "payments": [],
                        "installmentsCount": 3,
                        "installmentsSchedule": [
                            {"number": 1, "amount": 300, "dueDate": "2025-01-01T00:00:00.000Z", "paid": False},
                            {"number": 2, "amount": 300, "dueDate": "2025-02-01T00:00:00.000Z", "paid": False},
                            {"number": 3, "amount": 300, "dueDate": "2025-03-01T00:00:00.000Z", "paid": False},
                        ],
                        "date": "2025-01-01T10:00:00.000Z",
                    }
                ],
                "exportDate": "2025-06-01T00:00:00.000Z",
                "version": "1.0",
            }
        )

        result = await import_backup(self.session, document)

        self.assertEqual((result.customers_imported, result.sales_imported), (1, 1))
        sale = (await list_sales(self.session))[0]
        self.assertEqual([i.paid for i in sale.installments_schedule], [True, False, False])
        customers = await list_customers(self.session)
        self.assertIsInstance(customers[0], Customer)

    def _browser_sale(self, paid_amount, schedule, payments=()) -> dict:
        return {
            "id": "SALE-20250101-0001",
            "customerId": "c1",
            "customerName": "Ali",
            "product": "TV",
            "totalAmount": 1000,
            "paidAmount": paid_amount,
            "payments": list(payments),
            "installmentsCount": len(schedule),
            "installmentsSchedule": [
                {
                    "number": index + 1,
                    "amount": amount,
                    "dueDate": f"2025-0{index + 1}-01T00:00:00.000Z",
                    "paid": paid,
                }
                for index, (amount, paid) in enumerate(schedule)
            ],
            "date": "2025-01-01T10:00:00.000Z",
        }

    async def test_import_partly_paid_schedule_without_original_amounts(self) -> None:
        payment = {"id": "p1", "amount": 500, "note": "", "date": "2025-01-15T10:00:00.000Z"}
        document = BackupDocument.model_validate(
            {
                "customers": [{"id": "c1", "name": "Ali"}],
                "sales": [self._browser_sale(500, [(334, True), (167, False), (333, False)], [payment])],
            }
        )

        await import_backup(self.session, document)

        sale = (await list_sales(self.session))[0]
        schedule = sale.installments_schedule
        self.assertEqual([i.original_amount for i in schedule], [334, 333, 333])
        self.assertEqual([i.amount for i in schedule], [334, 167, 333])
        self.assertEqual(sum(i.amount for i in schedule if not i.paid), sale.remaining_amount)

    async def test_paid_total_without_payments_survives_new_payments(self) -> None:
        document = BackupDocument.model_validate(
            {
                "customers": [{"id": "c1", "name": "Ali"}],
                "sales": [self._browser_sale(500, [(334, False), (333, False), (333, False)])],
            }
        )
        await import_backup(self.session, document)

        await record_payment(
            self.session, "SALE-20250101-0001", PaymentCreate(amount=Decimal("100")), now=NOW
        )
        await create_sale(
            self.session,
            SaleCreate(customer_id="c1", product="Fan", total_amount=Decimal("90"), installments_count=1),
            now=NOW,
        )

        sale = next(s for s in await list_sales(self.session) if s.id == "SALE-20250101-0001")
        self.assertEqual(sale.paid_amount, Decimal("600"))
        self.assertEqual(sum(p.amount for p in sale.payments), Decimal("600"))
        self.assertEqual(sale.remaining_amount, Decimal("400"))
        self.assertEqual([i.paid for i in sale.installments_schedule], [True, False, False])
        self.assertEqual(sum(i.amount for i in sale.installments_schedule if not i.paid), Decimal("400"))
