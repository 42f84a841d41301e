"""
Tests for the storage layer: sheet row codec, password hash preservation,
the worksheet backend and the in-memory backends.
"""

import asyncio

import pytest

from tailorbook.config.settings import GoogleSheetsSettings
from tailorbook.models import BusinessSettings, Customer, StateSnapshot, User
from tailorbook.services.storage import (
    InMemoryBusinessSettingsStorage,
    InMemoryStateStorage,
    StorageError,
)
from tailorbook.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
    _document_to_row,
    _row_to_document,
)
from tailorbook.services.storage.interface import preserve_password_hashes, snapshot_from_documents


class FakeSpreadsheet:
    """Just enough of a gspread Spreadsheet for the batch value calls."""

    def __init__(self):
        self.sheets = {}
        self.fail_updates = 0
        self.update_calls = 0
        self.clear_calls = 0

    @staticmethod
    def _title(range_name):
        return range_name.split("!")[0].strip("'")

    def values_batch_get(self, ranges):
        value_ranges = []
        for range_name in ranges:
            rows = list(self.sheets.get(self._title(range_name), []))
            while rows and not any(rows[-1]):
                rows.pop()
            value_ranges.append({"range": range_name, "values": rows})
        return {"valueRanges": value_ranges}

    def values_batch_update(self, body):
        self.update_calls += 1
        if self.fail_updates:
            self.fail_updates -= 1
            raise RuntimeError("quota exceeded")
        for entry in body["data"]:
            rows = self.sheets.setdefault(self._title(entry["range"]), [])
            for index, values in enumerate(entry["values"]):
                if index < len(rows):
                    rows[index] = list(values)
                else:
                    rows.append(list(values))

    def values_batch_clear(self, body=None):
        self.clear_calls += 1
        for range_name in body["ranges"]:
            self.sheets[self._title(range_name)] = []


class FakeSheetsClient(GoogleSheetsClient):
    """Sheets client that never leaves the process."""

    def __init__(self):
        super().__init__(GoogleSheetsSettings(credentials_path=__file__, spreadsheet_id="sheet-1"))
        self.spreadsheet = FakeSpreadsheet()

    def get_spreadsheet(self):
        return self.spreadsheet

    def get_or_create_sheet(self, title, headers, rows=1000):
        self.spreadsheet.sheets.setdefault(title, [])


class TestSheetRows:
    """Tests for the id | data row layout."""

    def test_row_to_document(self):
        """Test decoding a stored row."""
        document = _row_to_document(["C-1", '{"name": "Imran", "phone": "0300"}'])
        assert document == {"id": "C-1", "name": "Imran", "phone": "0300"}

    def test_blank_and_broken_rows_are_skipped(self):
        """Test that empty ids and bad JSON are dropped."""
        assert _row_to_document([]) is None
        assert _row_to_document(["", "{}"]) is None
        assert _row_to_document(["C-1", "{not json"]) is None

    def test_id_only_row(self):
        """Test that a row with no data column still yields its id."""
        assert _row_to_document(["C-9"]) == {"id": "C-9"}

    def test_document_to_row(self):
        """Test encoding keeps non-ASCII text readable."""
        row = _document_to_row({"id": 17, "name": "Zoë"})
        assert row[0] == "17"
        assert "Zoë" in row[1]
        assert _document_to_row({"name": "no id"}) is None


class TestPasswordHashes:
    """Tests for keeping stored credentials on save."""

    def test_missing_hash_filled_from_store(self):
        """Test that a user sent without a hash keeps the stored one."""
        merged = preserve_password_hashes(
            [{"id": "U-1", "passwordHash": None}, {"id": "U-2", "passwordHash": "new"}],
            {"U-1": "old", "U-2": "older"},
        )
        assert [d["passwordHash"] for d in merged] == ["old", "new"]

    def test_in_memory_save_keeps_hashes(self, storage):
        """Test that saving a user without a hash does not wipe it."""
        async def scenario():
            snapshot = await storage.load_all()
            for user in snapshot.users:
                user.password_hash = None
            await storage.save_all(snapshot)
            return await storage.load_all()

        reloaded = asyncio.run(scenario())
        assert reloaded.users[0].password_hash == "admin123"


class TestInMemoryStorage:
    """Tests for the in-memory backends."""

    def test_load_is_a_copy(self, storage):
        """Test that changing a loaded snapshot does not change the store."""
        snapshot = asyncio.run(storage.load_all())
        snapshot.customers.append(Customer(name="Ghost"))
        assert len(storage.payload["customers"]) == 2

    def test_empty_store(self):
        """Test that an empty store loads as empty collections."""
        snapshot = asyncio.run(InMemoryStateStorage().load_all())
        assert snapshot == StateSnapshot()

    def test_injected_failure(self, storage):
        """Test that fail_saves makes the next save raise."""
        storage.fail_saves = 1
        with pytest.raises(StorageError):
            asyncio.run(storage.save_all(StateSnapshot()))
        assert storage.saved_payloads == []

    def test_unreadable_records_are_skipped(self):
        """Test that a malformed stored record is dropped, not fatal."""
        snapshot = snapshot_from_documents({
            "users": [{"id": "U-1", "username": "a", "name": "A"}, {"id": "U-2"}],
            "customers": None,
        })
        assert [u.id for u in snapshot.users] == ["U-1"]
        assert snapshot.customers == []

    def test_business_settings_round_trip(self):
        """Test storing and reading business settings."""
        store = InMemoryBusinessSettingsStorage()

        async def scenario():
            default = await store.get()
            await store.set(BusinessSettings(business_name="Khan Tailors"))
            return default, await store.get()

        default, saved = asyncio.run(scenario())
        assert default.business_name == "Designer Tailors"
        assert saved.business_name == "Khan Tailors"

    def test_user_documents_use_camel_case(self):
        """Test the stored key names of a user record."""
        document = User(id="U-1", username="a", name="A", password_hash="x").to_document()
        assert document["passwordHash"] == "x"
        assert "lastLogin" in document


class TestGoogleSheetsStorage:
    """Tests for the worksheet backend against an in-process spreadsheet."""

    @pytest.fixture
    def client(self):
        return FakeSheetsClient()

    @staticmethod
    def _customers(*names):
        return StateSnapshot(customers=[
            Customer(id=f"C-{i}", name=name) for i, name in enumerate(names, start=1)
        ])

    def test_round_trip(self, client):
        """Test that a saved snapshot loads back."""
        storage = GoogleSheetsStateStorage(client)

        async def scenario():
            await storage.save_all(self._customers("Imran", "Bilal"))
            return await storage.load_all()

        loaded = asyncio.run(scenario())
        assert [c.name for c in loaded.customers] == ["Imran", "Bilal"]
        assert client.spreadsheet.sheets["Customers"][0][0] == "C-1"

    def test_save_is_one_write(self, client):
        """Test that a save sends one batch update and no clear."""
        storage = GoogleSheetsStateStorage(client)
        asyncio.run(storage.save_all(self._customers("Imran")))
        assert client.spreadsheet.update_calls == 1
        assert client.spreadsheet.clear_calls == 0

    def test_failed_save_keeps_previous_rows(self, client):
        """Test that a write that fails leaves the last good save readable."""
        storage = GoogleSheetsStateStorage(client)

        async def scenario():
            await storage.save_all(self._customers("Imran"))
            client.spreadsheet.fail_updates = 1
            with pytest.raises(StorageError):
                await storage.save_all(self._customers("Imran", "Bilal"))
            return await storage.load_all()

        loaded = asyncio.run(scenario())
        assert [c.name for c in loaded.customers] == ["Imran"]

    def test_shorter_save_blanks_stale_rows(self, client):
        """Test that removing a record blanks its old row."""
        storage = GoogleSheetsStateStorage(client)

        async def scenario():
            await storage.save_all(self._customers("Imran", "Bilal", "Zain"))
            await storage.save_all(self._customers("Imran"))
            return await storage.load_all()

        loaded = asyncio.run(scenario())
        assert [c.name for c in loaded.customers] == ["Imran"]
        assert client.spreadsheet.sheets["Customers"][1:] == [["", ""], ["", ""]]

    def test_emptied_collection_is_blanked(self, client):
        """Test that saving an empty collection blanks every old row."""
        storage = GoogleSheetsStateStorage(client)

        async def scenario():
            await storage.save_all(self._customers("Imran"))
            await storage.save_all(StateSnapshot())
            return await storage.load_all()

        assert asyncio.run(scenario()).customers == []

    def test_stored_password_hash_is_kept(self, client):
        """Test that a user saved without a hash keeps the one on the sheet."""
        storage = GoogleSheetsStateStorage(client)

        async def scenario():
            await storage.save_all(StateSnapshot(users=[
                User(id="U-1", username="a", name="A", password_hash="secret")
            ]))
            await storage.save_all(StateSnapshot(users=[
                User(id="U-1", username="a", name="A", password_hash=None)
            ]))
            return await storage.load_all()

        assert asyncio.run(scenario()).users[0].password_hash == "secret"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
