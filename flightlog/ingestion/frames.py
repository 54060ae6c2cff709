"""
Decoded flight log frames and telemetry extraction.

Log decoding (binary formats, decryption, key fetching) is done by an
external decoder. Any object with a ``decode(path) -> DecodedLog``
method can be plugged into the import pipeline. This module defines
what such a decoder hands back and turns its frames into
``TelemetrySample`` objects.

Frame timing:
    Frames carry the aircraft's fly time in seconds. Frames without one
    are assumed to follow the previous frame at the nominal 10 Hz rate.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from flightlog.config import config
from flightlog.samples import TelemetrySample


@dataclass
class OsdFrame:
    """Flight controller state (on-screen display record)."""
    fly_time: float = 0.0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    height: Optional[float] = None
    vps_height: Optional[float] = None
    altitude_abs: Optional[float] = None
    x_speed: Optional[float] = None
    y_speed: Optional[float] = None
    z_speed: Optional[float] = None
    pitch: Optional[float] = None
    roll: Optional[float] = None
    yaw: Optional[float] = None
    gps_num: Optional[int] = None
    gps_level: Optional[int] = None
    flyc_state: Optional[str] = None


@dataclass
class GimbalFrame:
    pitch: Optional[float] = None
    roll: Optional[float] = None
    yaw: Optional[float] = None


@dataclass
class BatteryFrame:
    charge_level: Optional[int] = None
    voltage: Optional[float] = None
    current: Optional[float] = None
    temperature: Optional[float] = None


@dataclass
class RcFrame:
    downlink_signal: Optional[int] = None
    uplink_signal: Optional[int] = None


@dataclass
class DecodedFrame:
    """One decoded frame of a flight log."""
    osd: OsdFrame = field(default_factory=OsdFrame)
    gimbal: GimbalFrame = field(default_factory=GimbalFrame)
    battery: BatteryFrame = field(default_factory=BatteryFrame)
    rc: RcFrame = field(default_factory=RcFrame)


@dataclass
class LogDetails:
    """Log-level details reported by the decoder."""
    product_type: Optional[str] = None
    aircraft_sn: Optional[str] = None
    aircraft_name: Optional[str] = None
    battery_sn: Optional[str] = None
    start_time: Optional[datetime] = None
    total_time: Optional[float] = None  # seconds


@dataclass
class DecodedLog:
    """Everything the external decoder extracts from one log file."""
    details: LogDetails
    frames: List[DecodedFrame] = field(default_factory=list)


def _ground_speed(osd: OsdFrame) -> Optional[float]:
    if osd.x_speed is None or osd.y_speed is None:
        return None
    return math.hypot(osd.x_speed, osd.y_speed)


def frame_to_sample(frame: DecodedFrame, timestamp_ms: int) -> TelemetrySample:
    """Map one decoded frame onto a telemetry sample."""
    osd = frame.osd
    gimbal = frame.gimbal
    battery = frame.battery
    rc = frame.rc

    rc_signal = rc.downlink_signal if rc.downlink_signal is not None else rc.uplink_signal

    return TelemetrySample(
        timestamp_ms=timestamp_ms,
        latitude=osd.latitude,
        longitude=osd.longitude,
        altitude=osd.altitude,
        height=osd.height,
        vps_height=osd.vps_height,
        altitude_abs=osd.altitude_abs,
        speed=_ground_speed(osd),
        velocity_x=osd.x_speed,
        velocity_y=osd.y_speed,
        velocity_z=osd.z_speed,
        pitch=osd.pitch,
        roll=osd.roll,
        yaw=osd.yaw,
        gimbal_pitch=gimbal.pitch,
        gimbal_roll=gimbal.roll,
        gimbal_yaw=gimbal.yaw,
        battery_percent=battery.charge_level,
        battery_voltage=battery.voltage,
        battery_current=battery.current,
        battery_temp=battery.temperature,
        flight_mode=osd.flyc_state,
        gps_signal=osd.gps_level,
        satellites=osd.gps_num,
        rc_signal=rc_signal,
    )


def extract_telemetry(
    frames: Sequence[DecodedFrame],
    frame_interval_ms: Optional[int] = None,
) -> List[TelemetrySample]:
    """
    Convert decoded frames to samples, one per frame, in frame order.

    Samples without a GPS fix are kept; callers decide what to store.
    """
    if frame_interval_ms is None:
        frame_interval_ms = config.ingestion.frame_interval_ms

    samples = []
    next_timestamp_ms = 0

    for frame in frames:
        fly_time = frame.osd.fly_time or 0.0
        if fly_time > 0.0:
            timestamp_ms = int(fly_time * 1000.0)
        else:
            timestamp_ms = next_timestamp_ms

        samples.append(frame_to_sample(frame, timestamp_ms))
        next_timestamp_ms = timestamp_ms + frame_interval_ms

    return samples
