from datetime import datetime, timezone

import pytest
from conftest import NOW, make_location, make_schedule, make_user

from app.errors import ProviderTimeout, ValidationFailed
from app.services.traffic_service import NO_DEFAULT_LOCATION, commute, suggested_departure


def commuter(db):
    home = make_location(db, name="Home", latitude=45.45, longitude=-73.6)
    user = make_user(db, default_location_id=home.id)
    return home, user


class TestCommute:
    def test_departure_leaves_a_ten_minute_buffer(self):
        start = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

        assert suggested_departure(start, 23) == datetime(2026, 10, 19, 8, 27, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_needs_a_default_location(self, db, collaborators):
        with pytest.raises(ValidationFailed) as excinfo:
            await commute(db, collaborators, make_user(db), now=NOW)
        assert excinfo.value.message == NO_DEFAULT_LOCATION

    @pytest.mark.asyncio
    async def test_no_shifts_today(self, db, collaborators):
        home, user = commuter(db)

        result = await commute(db, collaborators, user, now=NOW)

        assert result == {
            "defaultLocation": {
                "id": home.id,
                "name": "Home",
                "address": "100 Main St",
                "city": "Montreal",
                "latitude": 45.45,
                "longitude": -73.6,
            },
            "trafficInfo": [],
            "msg": "No schedules found for today",
        }

    @pytest.mark.asyncio
    async def test_each_shift_gets_travel_and_departure(self, db, collaborators, maps):
        home, user = commuter(db)
        office = make_location(db)
        schedule = make_schedule(db, office, [user], title="Front desk")

        result = await commute(db, collaborators, user, now=NOW)

        [entry] = result["trafficInfo"]
        assert (entry["scheduleId"], entry["scheduleTitle"], entry["startTime"]) == (schedule.id, "Front desk", "09:00")
        assert entry["traffic"] == {
            "condition": "light traffic",
            "level": 1,
            "travelTimeMinutes": 23,
            "delayMinutes": 4,
            "distance": 12.4,
            "suggestedDepartureTime": "08:27",
        }
        assert maps.route_calls == [((45.45, -73.6), office.coordinates, 0)]

    @pytest.mark.asyncio
    async def test_failed_lookups_are_left_out(self, db, collaborators, maps):
        home, user = commuter(db)
        make_schedule(db, make_location(db), [user])
        maps.error = ProviderTimeout("slow")

        result = await commute(db, collaborators, user, now=NOW)

        assert result["trafficInfo"] == []
        assert "msg" not in result
