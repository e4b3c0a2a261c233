from __future__ import annotations

from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase
from unittest.mock import patch

from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ledger.models import Base
from ledger.schemas.activity import ActivityType
from ledger.schemas.customer import Customer, CustomerCategory
from ledger.services import store
from ledger.services.activity import add_activity, list_activity


class StoreTestCase(IsolatedAsyncioTestCase):
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


class DecodeRecordTests(StoreTestCase):
    async def test_missing_value_uses_fallback(self) -> None:
        result = store.decode_record(None, TypeAdapter(list[Customer]), list)
        self.assertTrue(result.ok)
        self.assertEqual(result.value, [])

    async def test_malformed_json_uses_fallback(self) -> None:
        result = store.decode_record("{not json", TypeAdapter(list[Customer]), list)
        self.assertFalse(result.ok)
        self.assertEqual(result.value, [])
        self.assertIsNotNone(result.error)

    async def test_malformed_collection_only_affects_its_key(self) -> None:
        await store.save_customers(self.session, [Customer(id="c1", name="Ali")])
        await store.write_raw(self.session, store.SALES_KEY, '[{"id": 1}]')
        await self.session.commit()

        with self.assertLogs("ledger.services.store", level="WARNING"):
            sales = await store.load_sales(self.session)

        self.assertEqual(sales, [])
        customers = await store.load_customers(self.session)
        self.assertEqual([c.id for c in customers], ["c1"])

    async def test_legacy_customer_fields_are_normalised(self) -> None:
        await store.write_raw(
            self.session,
            store.CUSTOMERS_KEY,
            '[{"id": "c1", "name": "Ali", "phone": null, "category": "VIP"},'
            ' {"id": "c2", "name": "Sara", "category": "unknown"}]',
        )
        customers = await store.load_customers(self.session)

        self.assertEqual(customers[0].phone, "")
        self.assertEqual(customers[0].category, CustomerCategory.VIP)
        self.assertEqual(customers[1].category, CustomerCategory.NORMAL)

    async def test_values_are_stored_with_camel_case_keys(self) -> None:
        await store.save_customers(self.session, [Customer(id="c1", name="Ali")])
        raw = await store.read_raw(self.session, store.CUSTOMERS_KEY)
        self.assertIn('"category":"normal"', raw)
        self.assertEqual(store.byte_size(raw), len(raw.encode("utf-8")))


class SettingsStoreTests(StoreTestCase):
    async def test_stored_settings_merge_over_defaults(self) -> None:
        await store.write_raw(
            self.session, store.SETTINGS_KEY, '{"lateDays": 10, "customFlag": true}'
        )
        settings = await store.load_settings(self.session)

        self.assertEqual(settings.late_days, 10)
        self.assertFalse(settings.dark_mode)
        self.assertEqual(settings.items_per_page, 20)

        await store.save_settings(self.session, settings)
        raw = await store.read_raw(self.session, store.SETTINGS_KEY)
        self.assertIn('"customFlag":true', raw)
        self.assertIn('"lateDays":10', raw)

    async def test_non_positive_late_days_fall_back(self) -> None:
        await store.write_raw(self.session, store.SETTINGS_KEY, '{"lateDays": 0}')
        settings = await store.load_settings(self.session)
        self.assertEqual(settings.effective_late_days, 30)


class KeyListingTests(StoreTestCase):
    async def test_list_and_delete_keys_by_prefix(self) -> None:
        await store.write_raw(self.session, f"{store.MANUAL_BACKUP_PREFIX}2", "{}")
        await store.write_raw(self.session, f"{store.MANUAL_BACKUP_PREFIX}1", "{}")
        await store.write_raw(self.session, store.CUSTOMERS_KEY, "[]")
        await self.session.commit()

        keys = await store.list_keys(self.session, store.MANUAL_BACKUP_PREFIX)
        self.assertEqual(
            keys, [f"{store.MANUAL_BACKUP_PREFIX}1", f"{store.MANUAL_BACKUP_PREFIX}2"]
        )

        await store.delete_keys(self.session, *keys)
        await self.session.commit()
        self.assertEqual(await store.list_keys(self.session, store.MANUAL_BACKUP_PREFIX), [])
        self.assertEqual(await store.read_raw(self.session, store.CUSTOMERS_KEY), "[]")


class ActivityLogTests(StoreTestCase):
    async def test_log_is_capped_newest_first(self) -> None:
        with patch(
            "ledger.services.activity.get_settings",
            return_value=SimpleNamespace(activity_log_limit=3),
        ):
            for index in range(5):
                await add_activity(self.session, ActivityType.SALE, f"entry {index}")
        await self.session.commit()

        entries = await list_activity(self.session)
        self.assertEqual([e.text for e in entries], ["entry 4", "entry 3", "entry 2"])

    async def test_filter_by_type_and_limit(self) -> None:
        await add_activity(self.session, ActivityType.CUSTOMER, "customer added")
        await add_activity(self.session, ActivityType.PAYMENT, "payment one")
        await add_activity(self.session, ActivityType.PAYMENT, "payment two", {"saleId": "s1"})

        payments = await list_activity(self.session, activity_type=ActivityType.PAYMENT, limit=1)

        self.assertEqual(len(payments), 1)
        self.assertEqual(payments[0].text, "payment two")
        self.assertEqual(payments[0].meta, {"saleId": "s1"})
