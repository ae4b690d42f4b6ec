"""
Tests for device registration and selection.
"""
import asyncio
from datetime import timedelta

import pytest

from pharmalync.core.constants import UserType
from pharmalync.core.errors import DeviceOwnerNotFoundError
from pharmalync.models.devices import DeviceRecord
from pharmalync.services.device_service import pick_most_recent
from tests.conftest import RETAILER_ID, TENANT_ID
from tests.fakes import T0

RETAILER = UserType.RETAILER


def _register(device_service, token, **kwargs):
    return asyncio.run(device_service.register(RETAILER, RETAILER_ID, token, **kwargs))


class TestPickMostRecent:
    def test_latest_active_device_wins(self) -> None:
        """Should pick the device with the newest lastActive."""
        devices = [
            DeviceRecord(token="tok-A", last_active=T0),
            DeviceRecord(token="tok-B", last_active=T0 + timedelta(minutes=5)),
        ]
        assert pick_most_recent(devices).token == "tok-B"

    def test_tie_goes_to_first_device(self) -> None:
        """Should keep the earlier device when timestamps are equal."""
        devices = [
            DeviceRecord(token="tok-A", last_active=T0),
            DeviceRecord(token="tok-B", last_active=T0),
        ]
        assert pick_most_recent(devices).token == "tok-A"

    def test_inactive_devices_are_ignored(self) -> None:
        devices = [
            DeviceRecord(token="tok-A", last_active=T0),
            DeviceRecord(token="tok-B", last_active=T0 + timedelta(hours=1), is_active=False),
        ]
        assert pick_most_recent(devices).token == "tok-A"
        assert pick_most_recent([devices[1]]) is None
        assert pick_most_recent([]) is None

    def test_mixed_timestamp_shapes(self) -> None:
        """Should compare millis, ISO strings and datetimes on one axis."""
        devices = [
            DeviceRecord.model_validate({"token": "tok-A", "lastActive": "2025-03-14T09:30:00Z"}),
            DeviceRecord.model_validate({"token": "tok-B", "lastActive": {"_seconds": 1741944900}}),
            DeviceRecord.model_validate({"token": "tok-C", "lastActive": "garbage"}),
        ]
        assert pick_most_recent(devices).token == "tok-B"


class TestRegister:
    def test_register_adds_device(self, device_service, user_repo, clock) -> None:
        """Should append a new device with a generated device id."""
        device = _register(device_service, "tok-A", user_agent="Android 14")

        assert device.device_id
        assert device.last_active == clock.now
        stored = user_repo.document(RETAILER, RETAILER_ID)["fcmDevices"]
        assert [entry["token"] for entry in stored] == ["tok-A"]
        assert stored[0]["userAgent"] == "Android 14"

    def test_register_is_idempotent(self, device_service, user_repo, clock) -> None:
        """Should refresh, not duplicate, an already registered token."""
        first = _register(device_service, "tok-A", device_id="phone-1")
        clock.advance(minutes=3)
        second = _register(device_service, "tok-A")

        assert second.device_id == first.device_id == "phone-1"
        assert second.last_active == clock.now
        assert len(user_repo.document(RETAILER, RETAILER_ID)["fcmDevices"]) == 1

    def test_register_picks_latest_for_dispatch(self, device_service, clock) -> None:
        _register(device_service, "tok-A")
        clock.advance(minutes=5)
        _register(device_service, "tok-B")

        latest = asyncio.run(device_service.most_recent_active(RETAILER, RETAILER_ID))

        assert latest.token == "tok-B"

    def test_register_for_unknown_user(self, device_service) -> None:
        with pytest.raises(DeviceOwnerNotFoundError) as exc_info:
            asyncio.run(device_service.register(RETAILER, "nobody", "tok-A"))
        assert exc_info.value.status_code == 404

    def test_register_migrates_legacy_token(self, device_service, user_repo) -> None:
        """Should rewrite a legacy fcmToken document into the device list layout."""
        user_repo.seed(UserType.WHOLESALER, TENANT_ID, {"name": "Sharma Pharma", "fcmToken": "tok-legacy"})

        asyncio.run(device_service.register(UserType.WHOLESALER, TENANT_ID, "tok-new"))

        document = user_repo.document(UserType.WHOLESALER, TENANT_ID)
        assert "fcmToken" not in document
        assert [entry["token"] for entry in document["fcmDevices"]] == ["tok-legacy", "tok-new"]


class TestUnregister:
    def test_unregister_removes_token(self, device_service, user_repo) -> None:
        _register(device_service, "tok-A")
        _register(device_service, "tok-B")

        result = asyncio.run(device_service.unregister(RETAILER, RETAILER_ID, "tok-A"))

        assert result["success"]
        assert [entry["token"] for entry in user_repo.document(RETAILER, RETAILER_ID)["fcmDevices"]] == ["tok-B"]

    def test_unregister_unknown_token_still_succeeds(self, device_service) -> None:
        """Should be a successful no-op for tokens and users that do not exist."""
        first = asyncio.run(device_service.unregister(RETAILER, RETAILER_ID, "tok-missing"))
        second = asyncio.run(device_service.unregister(RETAILER, "nobody", "tok-missing"))

        assert first == {"success": True, "message": "Device not registered"}
        assert second["success"]

    def test_remove_all(self, device_service) -> None:
        _register(device_service, "tok-A")
        _register(device_service, "tok-B")

        assert asyncio.run(device_service.remove_all(RETAILER, RETAILER_ID)) == 2
        assert asyncio.run(device_service.list_devices(RETAILER, RETAILER_ID)) == []


class TestHeartbeat:
    def test_touch_bumps_last_active(self, device_service, clock) -> None:
        _register(device_service, "tok-A")
        clock.advance(hours=2)

        assert asyncio.run(device_service.touch(RETAILER, RETAILER_ID, "tok-A"))
        devices = asyncio.run(device_service.list_devices(RETAILER, RETAILER_ID))
        assert devices[0].last_active == clock.now

    def test_touch_unknown_token_is_noop(self, device_service) -> None:
        """Should neither fail nor register anything."""
        assert not asyncio.run(device_service.touch(RETAILER, RETAILER_ID, "tok-unknown"))
        assert not asyncio.run(device_service.touch(RETAILER, "nobody", "tok-unknown"))
        assert asyncio.run(device_service.list_devices(RETAILER, RETAILER_ID)) == []


class TestMaintenance:
    def test_deactivate_hides_device_from_selection(self, device_service, clock) -> None:
        _register(device_service, "tok-A")
        clock.advance(minutes=1)
        _register(device_service, "tok-B")

        assert asyncio.run(device_service.deactivate(RETAILER, RETAILER_ID, "tok-B"))
        assert not asyncio.run(device_service.deactivate(RETAILER, RETAILER_ID, "tok-B"))

        latest = asyncio.run(device_service.most_recent_active(RETAILER, RETAILER_ID))
        assert latest.token == "tok-A"

    def test_prune_inactive_drops_idle_devices(self, device_service, clock) -> None:
        """Should drop devices idle longer than the cutoff and keep the rest."""
        _register(device_service, "tok-old")
        clock.advance(days=40)
        _register(device_service, "tok-fresh")

        pruned = asyncio.run(device_service.prune_inactive(RETAILER, RETAILER_ID, max_age_days=30))

        assert pruned == 1
        tokens = [device.token for device in asyncio.run(device_service.list_devices(RETAILER, RETAILER_ID))]
        assert tokens == ["tok-fresh"]

    def test_list_devices_for_unknown_user(self, device_service) -> None:
        with pytest.raises(DeviceOwnerNotFoundError):
            asyncio.run(device_service.list_devices(RETAILER, "nobody"))
