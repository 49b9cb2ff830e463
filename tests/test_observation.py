from datetime import date

import pytest

from calwater.data.observation import (
    Duration,
    Observation,
    RecordError,
    Recording,
    Sentinel,
    UnorderedComparisonError,
    parse_value,
)

RECORD = ["VIL", "D", "15", "STORAGE", "20220216 0000", "20220215 0000", "9593", " ", "AF"]


def _obs(station="VIL", day=1, value=100, granularity=Duration.DAILY):
    d = date(2022, 1, day)
    return Observation(station, d, d, Recording(value), granularity)


class TestValue:

    @pytest.mark.parametrize("text, expected", [
        ("---",   Sentinel.DASH),
        ("ART",   Sentinel.ART),
        ("BRT",   Sentinel.BRT),
        ("9593",  Recording(9593)),
        (" 42 ",  Recording(42)),
        ("0",     Recording(0)),
    ])
    def test_parse_known_values(self, text, expected):
        assert parse_value(text) == expected

    @pytest.mark.parametrize("text", ["abc", "-5", "12.5", ""])
    def test_unparseable_is_missing(self, text):
        assert parse_value(text) is Sentinel.DASH

    def test_unparseable_as_zero(self):
        assert parse_value("n/a", unparseable_as_zero=True) == Recording(0)

    def test_recording_rejects_negative(self):
        with pytest.raises(ValueError):
            Recording(-1)


class TestEqualityAndOrder:

    def test_equality_ignores_granularity(self):
        daily, monthly = _obs(), _obs(granularity=Duration.MONTHLY)
        assert daily == monthly
        assert hash(daily) == hash(monthly)
        assert len({daily, monthly}) == 1

    def test_equality_compares_value(self):
        assert _obs(value=1) != _obs(value=2)

    def test_order_by_observation_date(self):
        early, late = _obs(day=1, value=900), _obs(day=2, value=1)
        assert early < late
        assert late >= early
        assert sorted([late, early]) == [early, late]

    def test_cross_station_comparison_refused(self):
        with pytest.raises(UnorderedComparisonError):
            _obs("VIL") < _obs("SHA", day=5)

    def test_compare_with_other_type(self):
        with pytest.raises(TypeError):
            _obs() < 3


class TestRecordCodec:

    def test_from_record(self):
        obs = Observation.from_record(RECORD)
        assert obs.station_id == "VIL"
        assert obs.date_observation == date(2022, 2, 15)
        assert obs.date_recording == date(2022, 2, 16)
        assert obs.value == Recording(9593)
        assert obs.granularity is Duration.DAILY

    def test_wrong_field_count(self):
        with pytest.raises(RecordError):
            Observation.from_record(RECORD[:8])

    def test_unknown_duration(self):
        with pytest.raises(RecordError):
            Observation.from_record(["VIL", "H"] + RECORD[2:])

    def test_bad_timestamp(self):
        bad = list(RECORD)
        bad[5] = "2022-02-15"
        with pytest.raises(RecordError):
            Observation.from_record(bad)

    def test_to_record(self):
        obs = Observation("ORO", date(2022, 3, 1), date(2022, 3, 2), Sentinel.BRT, Duration.MONTHLY)
        assert obs.to_record() == [
            "ORO", "M", "15", "STORAGE", "20220302 0000", "20220301 0000", "BRT", "", "AF",
        ]

    def test_round_trip(self):
        obs = Observation.from_record(RECORD)
        again = Observation.from_record(obs.to_record())
        assert again == obs
        assert again.granularity is obs.granularity
