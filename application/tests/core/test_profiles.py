"""
Tests for legacy/current profile resolution.
"""
from datetime import datetime, timezone

from pharmalync.models.profiles import CurrentProfile, LegacyProfile, resolve_profile


class TestResolveProfile:
    def test_current_layout(self) -> None:
        """Should read the nested profile map and the fcmDevices list."""
        profile = resolve_profile("R1", {
            "profile": {"realName": "Gupta Medicals", "phone": "9876543210", "address": "Karol Bagh"},
            "fcmDevices": [
                {"token": "tok-A", "deviceId": "d1", "isActive": True, "lastActive": 1741944615000},
                {"deviceId": "broken"},
            ],
        })
        assert isinstance(profile, CurrentProfile)
        assert profile.name == "Gupta Medicals"
        assert profile.area == "Karol Bagh"
        assert [d.token for d in profile.devices] == ["tok-A"]
        assert profile.devices[0].last_active == datetime(2025, 3, 14, 9, 30, 15, tzinfo=timezone.utc)

    def test_legacy_layout_exposes_single_token_as_device(self) -> None:
        """Should wrap the lone fcmToken as a one-element device list."""
        profile = resolve_profile("R2", {"name": "Old Chemist", "phone": "9000000000", "fcmToken": "legacy-token"})
        assert isinstance(profile, LegacyProfile)
        assert profile.name == "Old Chemist"
        assert len(profile.devices) == 1
        assert profile.devices[0].token == "legacy-token"
        assert profile.devices[0].is_active

    def test_legacy_layout_without_token(self) -> None:
        profile = resolve_profile("R3", {"name": "No Device"})
        assert isinstance(profile, LegacyProfile)
        assert profile.devices == []

    def test_tenant_contact_phone(self) -> None:
        """Should fall back to contactPhone for tenant documents."""
        profile = resolve_profile("T1", {"name": "Sharma Pharma", "contactPhone": "919812345678"})
        assert profile.phone == "919812345678"
