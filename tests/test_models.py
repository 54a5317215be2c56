"""Tests for decoding printer responses into domain models."""

import pytest

from marlin_remote.core import (
    EndstopStates,
    FirmwareInfo,
    Material,
    PrintProgress,
    PrintTime,
    PrinterSnapshot,
    SDFile,
    TemperatureReadings,
)
from marlin_remote.errors import DecodingFailed

from .conftest import ENDSTOPS, FILES, FIRMWARE, PRINT_TIME, PROGRESS, TEMPERATURES


def test_temperature_readings_decode_wire_names():
    readings = TemperatureReadings.from_payload(TEMPERATURES)

    assert readings == TemperatureReadings(
        hotend_temp=24.5, hotend_target=0.0, bed_temp=23.0, bed_target=0.0
    )
    assert readings.as_dict() == TEMPERATURES


def test_temperature_readings_accept_integers():
    readings = TemperatureReadings.from_payload(
        {"hotend_temp": 200, "hotend_target": 200, "bed_temp": 60, "bed_target": 60}
    )

    assert readings.hotend_temp == 200.0
    assert isinstance(readings.bed_target, float)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"hotend_temp": 20, "hotend_target": 0, "bed_temp": 20},
        {"hotend_temp": "20", "hotend_target": 0, "bed_temp": 20, "bed_target": 0},
        {"hotend_temp": True, "hotend_target": 0, "bed_temp": 20, "bed_target": 0},
    ],
)
def test_temperature_readings_reject_bad_shapes(payload):
    with pytest.raises(DecodingFailed):
        TemperatureReadings.from_payload(payload)


def test_print_progress_decodes_wire_names():
    progress = PrintProgress.from_payload(PROGRESS)

    assert progress.is_printing is True
    assert progress.filename == "benchy.gcode"
    assert progress.percent_complete == 42.5
    assert progress.bytes_printed == 4250
    assert progress.total_bytes == 10000
    assert progress.as_dict() == PROGRESS


def test_print_progress_clamps_percent_and_tolerates_null_filename():
    progress = PrintProgress.from_payload(
        {
            "printing": False,
            "filename": None,
            "percent": 100.4,
            "bytes_printed": 0,
            "total_bytes": 0,
        }
    )

    assert progress.percent_complete == 100.0
    assert progress.filename == ""


@pytest.mark.parametrize(
    "override",
    [
        {"printing": "yes"},
        {"bytes_printed": -1},
        {"total_bytes": 1.5},
        {"percent": None},
        {"filename": 12},
        {"percent": float("nan")},
        {"bytes_printed": float("nan")},
        {"total_bytes": float("inf")},
    ],
)
def test_print_progress_rejects_bad_fields(override):
    payload = dict(PROGRESS)
    payload.update(override)

    with pytest.raises(DecodingFailed):
        PrintProgress.from_payload(payload)


def test_sd_file_list_decodes_in_order_with_optional_size():
    files = SDFile.list_from_payload(FILES)

    assert files == (SDFile("benchy.gcode", 10000), SDFile("calib.gcode", None))
    assert [sd_file.as_dict() for sd_file in files] == FILES["files"]


def test_sd_file_list_keeps_first_duplicate():
    files = SDFile.list_from_payload(
        {"files": [{"name": "a.gcode", "size": 1}, {"name": "a.gcode", "size": 2}]}
    )

    assert files == (SDFile("a.gcode", 1),)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"files": "a.gcode"},
        {"files": [{"size": 10}]},
        {"files": [{"name": "a.gcode", "size": -3}]},
    ],
)
def test_sd_file_list_rejects_bad_shapes(payload):
    with pytest.raises(DecodingFailed):
        SDFile.list_from_payload(payload)


def test_sd_file_display_size():
    assert SDFile("a").display_size == "Unknown"
    assert SDFile("a", 2048).display_size == "2.0 KB"
    assert SDFile("a", 3 * 1024 * 1024).display_size == "3.0 MB"


def test_firmware_info_label():
    info = FirmwareInfo.from_payload(FIRMWARE)

    assert info.machine == "Ender-3"
    assert info.uuid is None
    assert info.label == "Marlin 2.1.2"
    assert FirmwareInfo().label == "Unknown"

    with pytest.raises(DecodingFailed):
        FirmwareInfo.from_payload({"success": True})


def test_temperature_readings_reject_non_finite_values():
    payload = dict(TEMPERATURES, bed_temp=float("inf"))

    with pytest.raises(DecodingFailed, match="finite"):
        TemperatureReadings.from_payload(payload)


def test_endstop_states_decode():
    endstops = EndstopStates.from_payload(ENDSTOPS)

    assert endstops.x_min == "open"
    assert endstops.triggered == ("z_min",)
    assert endstops.as_dict()["y_max"] is None

    with pytest.raises(DecodingFailed):
        EndstopStates.from_payload({"endstops": {"x_min": True}})


def test_print_time_decode():
    elapsed = PrintTime.from_payload(PRINT_TIME)

    assert elapsed == PrintTime(hours=1, minutes=23, seconds=45, total_seconds=5025)
    assert PrintTime.from_payload({"success": True, "printTime": None}) is None

    with pytest.raises(DecodingFailed):
        PrintTime.from_payload({"printTime": {"hours": 1}})


def test_material_presets():
    assert (Material.PLA.hotend, Material.PLA.bed) == (200, 60)
    assert (Material.PETG.hotend, Material.PETG.bed) == (235, 80)
    assert (Material.ABS.hotend, Material.ABS.bed) == (240, 100)


def test_snapshot_defaults():
    snapshot = PrinterSnapshot()

    assert snapshot.connected is False
    assert snapshot.sd_files == ()
    assert snapshot.status.firmware == "Unknown"
    assert snapshot.status.state == "idle"
    payload = snapshot.as_dict()
    assert payload["temperatures"]["hotend_temp"] == 0.0
    assert payload["printProgress"]["printing"] is False
