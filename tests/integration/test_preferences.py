"""Integration tests for PreferenceService."""

import pytest

from advanceweekly.errors import ValidationError
from advanceweekly.models import UserPreference, Weekday
from tests.factories import IntegrationConnectionFactory, UserPreferenceFactory


class TestPreferenceService:
    """Tests for reading and updating preferences."""

    async def test_defaults_materialized_on_first_get(self, preferences, fetch_all, test_user_id):
        """Test a first read stores the default row."""
        preference = await preferences.get(test_user_id)

        assert preference.auto_generate is True
        assert preference.preferred_day == Weekday.FRIDAY
        assert preference.preferred_hour == 14
        assert preference.timezone == "America/New_York"
        assert len(await fetch_all(UserPreference, UserPreference.user_id == test_user_id)) == 1

    async def test_partial_update(self, preferences, test_user_id):
        """Test only the given fields change."""
        updated = await preferences.update(test_user_id, {"preferred_hour": 9, "timezone": "Europe/Berlin"})

        assert updated.preferred_hour == 9
        assert updated.timezone == "Europe/Berlin"
        assert updated.preferred_day == Weekday.FRIDAY
        assert (await preferences.get(test_user_id)).preferred_hour == 9

    @pytest.mark.parametrize(
        "changes",
        [
            {"preferred_hour": 24},
            {"preferred_hour": -1},
            {"timezone": "Atlantis/Lost_City"},
            {"preferred_day": "someday"},
        ],
    )
    async def test_invalid_values_rejected(self, preferences, test_user_id, changes):
        """Test malformed values raise ValidationError and change nothing."""
        with pytest.raises(ValidationError):
            await preferences.update(test_user_id, changes)

        preference = await preferences.get(test_user_id)
        assert preference.preferred_hour == 14
        assert preference.timezone == "America/New_York"

    async def test_integrations_must_be_connected(self, preferences, add_rows, test_user_id):
        """Test only connected sources can be included."""
        await add_rows(IntegrationConnectionFactory(user_id=test_user_id, source_id="todoist"))

        with pytest.raises(ValidationError, match="github"):
            await preferences.update(test_user_id, {"include_integrations": ["todoist", "github"]})

        updated = await preferences.update(test_user_id, {"include_integrations": ["todoist"]})
        assert updated.include_integrations == ["todoist"]

    async def test_reset(self, preferences, add_rows, test_user_id):
        """Test reset restores defaults without deleting the row."""
        await add_rows(
            UserPreferenceFactory(
                user_id=test_user_id, auto_generate=False, preferred_day=Weekday.MONDAY, timezone="Asia/Tokyo"
            )
        )

        preference = await preferences.reset(test_user_id)

        assert preference.auto_generate is True
        assert preference.preferred_day == Weekday.FRIDAY
        assert preference.timezone == "America/New_York"

    async def test_list_auto_generate(self, preferences, add_rows):
        """Test only users with auto-generation enabled are listed, in user order."""
        await add_rows(
            UserPreferenceFactory(user_id="user-b"),
            UserPreferenceFactory(user_id="user-a"),
            UserPreferenceFactory(user_id="user-c", auto_generate=False),
        )

        listed = await preferences.list_auto_generate()

        assert [preference.user_id for preference in listed] == ["user-a", "user-b"]

    async def test_to_dict(self, preferences, test_user_id):
        """Test the API representation uses plain values."""
        data = (await preferences.get(test_user_id)).to_dict()

        assert data["preferred_day"] == "friday"
        assert data["include_integrations"] == []
        assert data["user_id"] == test_user_id
