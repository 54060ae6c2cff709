"""
Tests for raw and downsampled telemetry, track decimation and overview stats.
"""

import pytest

from flightlog.errors import FlightNotFound
from flightlog.samples import TelemetrySample
from flightlog.storage import FlightDatabase
from flightlog.storage.queries import bucket_width_ms


def _bucket_samples():
    """30 samples, 100 ms apart, with known per-second distributions."""
    satellites = [12] * 6 + [10] * 4 + [8] * 5 + [9] * 5 + [None] * 10
    modes = ['GPS'] * 3 + ['ATTI'] * 7 + ['GPS'] * 10 + [None] * 10
    battery = [80] * 5 + [81] * 5 + [70] * 10 + [60] * 10

    return [
        TelemetrySample(
            timestamp_ms=i * 100,
            latitude=47.0,
            longitude=8.0,
            altitude=float(i),
            battery_percent=battery[i],
            satellites=satellites[i],
            flight_mode=modes[i],
        )
        for i in range(30)
    ]


def test_small_flight_returns_raw_samples(db: FlightDatabase, stored_flight, make_samples):
    """Test that a flight within budget is returned untouched."""
    stored_flight(1, make_samples(3))

    series = db.get_flight_telemetry(1, max_points=5000)

    assert series.time == [0.0, 0.1, 0.2]
    assert series.altitude == pytest.approx([10.0, 10.01, 10.02])
    assert series.battery == [90, 90, 90]
    assert len(series.speed) == len(series) == 3


def test_raw_records_are_ascending(db: FlightDatabase, stored_flight, make_samples):
    """Test that raw records come back sorted regardless of insert order."""
    samples = make_samples(5)
    stored_flight(1, list(reversed(samples)))

    records = db.get_telemetry_records(1)

    assert [r.timestamp_ms for r in records] == [0, 100, 200, 300, 400]


def test_series_time_is_relative_to_first_sample(db: FlightDatabase, stored_flight, make_samples):
    """Test that the time axis starts at zero even if samples do not."""
    samples = [
        TelemetrySample(timestamp_ms=5000 + i * 500, latitude=47.0, longitude=8.0)
        for i in range(3)
    ]
    stored_flight(1, samples)

    assert db.get_flight_telemetry(1).time == [0.0, 0.5, 1.0]


def test_long_flight_is_downsampled(db: FlightDatabase, stored_flight, make_samples):
    """Test that 12,000 samples over two minutes collapse into one-second buckets."""
    stored_flight(1, make_samples(12_000, interval_ms=10))

    records = db.get_telemetry_records(1, max_points=5000)
    timestamps = [r.timestamp_ms for r in records]

    assert 0 < len(records) <= 121
    assert all(ts % 1000 == 0 for ts in timestamps)
    assert timestamps == sorted(set(timestamps))
    assert timestamps[0] == 0
    # Bucket 0 holds samples 0..99
    assert records[0].altitude == pytest.approx(10.0 + 49.5 * 0.01)
    assert records[0].satellites == 14
    assert records[0].flight_mode == 'GPS'


def test_downsampled_bucket_aggregates(db: FlightDatabase, stored_flight):
    """Test averaging, rounding and mode selection per bucket."""
    stored_flight(1, _bucket_samples())

    records = db.get_telemetry_records(1, max_points=3)

    assert [r.timestamp_ms for r in records] == [0, 1000, 2000]

    assert records[0].altitude == pytest.approx(4.5)
    assert records[0].battery_percent == 81
    assert records[1].battery_percent == 70

    assert records[0].satellites == 12
    # Tie between 8 and 9 goes to the smaller value
    assert records[1].satellites == 8
    assert records[2].satellites is None

    assert records[0].flight_mode == 'ATTI'
    assert records[1].flight_mode == 'GPS'
    assert records[2].flight_mode is None


def test_bucket_width_has_one_second_floor():
    """Test the bucket width calculation."""
    assert bucket_width_ms(0, 119_990, 5000, 1000) == 1000
    assert bucket_width_ms(0, 3_600_000, 100, 1000) == 36_000
    assert bucket_width_ms(500, 500, 10, 1000) == 1000


def test_unknown_flight_raises_not_found(db: FlightDatabase):
    """Test that telemetry for an unknown flight raises FlightNotFound."""
    with pytest.raises(FlightNotFound) as exc_info:
        db.get_flight_telemetry(404)

    assert exc_info.value.flight_id == 404


def test_flight_without_samples_raises_not_found(db: FlightDatabase, make_metadata):
    """Test that a flight row without telemetry is reported as not found."""
    db.insert_flight(make_metadata(1))

    with pytest.raises(FlightNotFound):
        db.get_flight_telemetry(1)


def test_non_positive_budget_rejected(db: FlightDatabase, stored_flight):
    """Test that a zero point budget is refused."""
    stored_flight(1)

    with pytest.raises(ValueError):
        db.get_telemetry_records(1, max_points=0)
    with pytest.raises(ValueError):
        db.get_flight_track(1, max_points=0)


def test_track_returns_lon_lat_alt(db: FlightDatabase, stored_flight, make_samples):
    """Test that a short track is returned in full as (lon, lat, alt)."""
    samples = make_samples(10)
    stored_flight(1, samples)

    track = db.get_flight_track(1, max_points=2000)

    assert len(track) == 10
    assert track[0] == (samples[0].longitude, samples[0].latitude, samples[0].altitude)
    assert track[-1] == (samples[-1].longitude, samples[-1].latitude, samples[-1].altitude)


def test_track_is_decimated_within_budget(db: FlightDatabase, stored_flight, make_samples):
    """Test that a long track never exceeds the point budget."""
    samples = make_samples(5000)
    stored_flight(1, samples)

    track = db.get_flight_track(1, max_points=2000)
    stored_positions = {(s.longitude, s.latitude) for s in samples}

    assert 0 < len(track) <= 2000
    assert all((lon, lat) in stored_positions for lon, lat, _ in track)
    longitudes = [lon for lon, _, _ in track]
    assert longitudes == sorted(longitudes)


def test_track_skips_samples_without_position(db: FlightDatabase, stored_flight):
    """Test that samples lacking a position are excluded from the track."""
    samples = [
        TelemetrySample(timestamp_ms=0, latitude=47.0, longitude=8.0, altitude=None),
        TelemetrySample(timestamp_ms=100, latitude=None, longitude=8.1, altitude=5.0),
        TelemetrySample(timestamp_ms=200, latitude=47.2, longitude=None, altitude=5.0),
        TelemetrySample(timestamp_ms=300, latitude=47.3, longitude=8.3, altitude=7.0),
    ]
    stored_flight(1, samples)

    assert db.get_flight_track(1) == [(8.0, 47.0, None), (8.3, 47.3, 7.0)]


def test_track_of_unknown_flight_is_empty(db: FlightDatabase):
    """Test that an unknown flight has an empty track."""
    assert db.get_flight_track(404) == []


def test_flight_data_bundle(db: FlightDatabase, stored_flight, make_samples):
    """Test that get_flight_data returns summary, series and track together."""
    stored_flight(1, make_samples(20), display_name='Morning survey')

    data = db.get_flight_data(1)
    payload = data.to_dict()

    assert data.flight.display_name == 'Morning survey'
    assert len(data.telemetry) == 20
    assert len(data.track) == 20
    assert payload['flight']['id'] == 1
    assert len(payload['telemetry']['time']) == 20


def test_flight_data_unknown_flight(db: FlightDatabase):
    """Test that get_flight_data raises for an unknown flight."""
    with pytest.raises(FlightNotFound):
        db.get_flight_data(404)


def test_overview_of_empty_store(db: FlightDatabase):
    """Test that an empty store reports zero totals."""
    overview = db.get_overview_stats()

    assert overview.total_flights == 0
    assert overview.total_distance_m == 0.0
    assert overview.total_duration_secs == 0.0
    assert overview.total_points == 0
    assert overview.batteries_used == []


def test_overview_aggregates(db: FlightDatabase, stored_flight, make_samples):
    """Test totals and per-battery flight counts across flights."""
    stored_flight(1, make_samples(10), battery_serial='B1', total_distance=100.0, duration_secs=60.0)
    stored_flight(2, make_samples(20), battery_serial='B2', total_distance=200.0, duration_secs=30.0)
    stored_flight(3, make_samples(30), battery_serial='B1', total_distance=300.0, duration_secs=10.0)
    stored_flight(4, make_samples(5), battery_serial=None, total_distance=50.0, duration_secs=5.0)

    overview = db.get_overview_stats()

    assert overview.total_flights == 4
    assert overview.total_distance_m == pytest.approx(650.0)
    assert overview.total_duration_secs == pytest.approx(105.0)
    assert overview.total_points == 65
    assert [(b.battery_serial, b.flight_count) for b in overview.batteries_used] == [
        ('B1', 2),
        ('B2', 1),
    ]
    assert overview.to_dict()['batteries_used'][0] == {'battery_serial': 'B1', 'flight_count': 2}
