"""
Test Suite for the MeArm Serial Controller
===========================================
Tests for command encoding, reply parsing and the link models.
"""

import dataclasses

import pytest
from pydantic import ValidationError

# Import modules to test
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hardware_interface import (
    ArmConfig,
    DecodeError,
    DeviceResponse,
    NoResponse,
    ReadFailure,
    ReadOutcome,
    SettleProfile,
)
from arm_control import (
    NO_RESPONSE,
    READ_FAILED,
    CommandEncoder,
    Jump,
    Move,
    PositioningMode,
    QueryPosition,
    ResponseParser,
    SetGripper,
    SetMode,
    Wait,
    WireFrame,
    format_number,
)


class TestCommandEncoder:
    """Tests for G-code encoding."""

    def setup_method(self):
        self.encoder = CommandEncoder()

    @pytest.mark.parametrize("x, y, z, f", [
        (100, 0, 100, 900),
        (10, 0, 5, 300),
        (-12.5, 40.25, 0, 1500),
        (0, 0, 0, 0),
    ])
    def test_move_and_jump_differ_only_in_opcode(self, x, y, z, f):
        """Linear and rapid moves share every field except the opcode."""
        move = self.encoder.encode(Move(x, y, z, f))
        jump = self.encoder.encode(Jump(x, y, z, f))

        assert move.opcode == "G1"
        assert jump.opcode == "G0"
        assert move.line.split(" ")[1:] == jump.line.split(" ")[1:]

        for frame in (move, jump):
            assert frame.line.endswith("\n")
            assert frame.line.count("\n") == 1

    def test_move_encoding(self):
        frame = self.encoder.encode(Move(10, 0, 5, 300))
        assert frame.line == "G1 X10 Y0 Z5 F300\n"
        assert frame.to_bytes() == b"G1 X10 Y0 Z5 F300\n"

    def test_jump_encoding(self):
        frame = self.encoder.encode(Jump(100, 0, 100, 900))
        assert frame.line == "G0 X100 Y0 Z100 F900\n"

    def test_gripper_carries_single_angle(self):
        frame = self.encoder.encode(SetGripper(75))
        assert frame.line == "M106 S75\n"
        assert frame.line.split()[1:] == ["S75"]

    def test_gripper_presets_match_direct_angles(self):
        """Open/close presets are plain SetGripper frames."""
        config = ArmConfig()
        open_frame = self.encoder.encode(SetGripper(config.gripper_open_angle))
        close_frame = self.encoder.encode(SetGripper(config.gripper_close_angle))

        assert open_frame.to_bytes() == self.encoder.encode(SetGripper(120)).to_bytes()
        assert close_frame.to_bytes() == self.encoder.encode(SetGripper(30)).to_bytes()

    def test_mode_encoding(self):
        assert self.encoder.encode(SetMode(PositioningMode.ABSOLUTE)).line == "G90\n"
        assert self.encoder.encode(SetMode(PositioningMode.RELATIVE)).line == "G91\n"

    def test_query_encoding(self):
        assert self.encoder.encode(QueryPosition()).line == "M114\n"

    def test_out_of_range_values_are_sent_as_is(self):
        """No range checks happen before transmission."""
        frame = self.encoder.encode(Move(99999, -500, 1e6, -1))
        assert frame.line == "G1 X99999 Y-500 Z1000000 F-1\n"

    def test_wait_has_no_wire_form(self):
        with pytest.raises(ValueError):
            self.encoder.encode(Wait(1))

    def test_rejects_non_commands(self):
        with pytest.raises(TypeError):
            self.encoder.encode("G1 X0")

    def test_frames_and_commands_are_immutable(self):
        frame = self.encoder.encode(QueryPosition())
        with pytest.raises(dataclasses.FrozenInstanceError):
            frame.line = "G28\n"
        with pytest.raises(dataclasses.FrozenInstanceError):
            Move(1, 2, 3, 4).x = 5

    def test_frame_str_has_no_terminator(self):
        assert str(WireFrame("G90\n")) == "G90"


class TestNumberFormatting:
    """Numbers are rendered in plain decimal form."""

    @pytest.mark.parametrize("value, expected", [
        (100, "100"),
        (100.0, "100"),
        (-3, "-3"),
        (12.5, "12.5"),
        (0.1, "0.1"),
    ])
    def test_format_number(self, value, expected):
        assert format_number(value) == expected


class TestResponseParser:
    """Tests for position reply extraction."""

    def setup_method(self):
        self.parser = ResponseParser()

    def test_text_before_sentinel_is_trimmed(self):
        assert self.parser.parse("POS:10,20,30ok\n") == "POS:10,20,30"

    def test_typical_firmware_reply(self):
        reply = b"X:100.00 Y:0.00 Z:100.00\r\nok\r\n"
        assert self.parser.parse(reply) == "X:100.00 Y:0.00 Z:100.00"

    def test_partial_reply_without_sentinel_passes_through(self):
        assert self.parser.parse(b"  X:10 Y:2") == "X:10 Y:2"

    def test_only_first_sentinel_counts(self):
        assert self.parser.parse("A ok B ok") == "A"

    def test_empty_read_is_no_response(self):
        assert self.parser.parse("") == NO_RESPONSE
        assert self.parser.parse(b"") == NO_RESPONSE
        assert isinstance(self.parser.error_for(b""), NoResponse)

    def test_undecodable_bytes_are_read_failure(self):
        response = DeviceResponse.from_bytes(b"\xff\xfe\xfd")
        assert response.outcome == ReadOutcome.DECODE_ERROR
        assert self.parser.parse(response) == READ_FAILED
        assert isinstance(self.parser.error_for(response), DecodeError)

    def test_failed_read_is_read_failure(self):
        response = DeviceResponse.failed("device unplugged")
        assert self.parser.parse(response) == READ_FAILED
        error = self.parser.error_for(response)
        assert isinstance(error, ReadFailure)
        assert not isinstance(error, DecodeError)

    def test_success_has_no_error(self):
        assert self.parser.error_for(b"X:1 ok") is None


class TestModels:
    """Tests for link models and configuration."""

    def test_device_response_classification(self):
        assert DeviceResponse.from_bytes(b"").outcome == ReadOutcome.EMPTY

        response = DeviceResponse.from_bytes(b"ok\n")
        assert response.is_success
        assert response.text == "ok\n"

    def test_split_multibyte_character_is_decode_error(self):
        """Decoding is strict; a cut character is not replaced."""
        raw = "X:10 Y:20 °".encode("utf-8")[:-1]
        response = DeviceResponse.from_bytes(raw)
        assert response.outcome == ReadOutcome.DECODE_ERROR
        assert response.text is None
        assert ResponseParser().parse(response) == READ_FAILED

    def test_default_config(self):
        config = ArmConfig()
        assert config.port == "auto"
        assert config.baudrate == 115200
        assert config.gripper_open_angle == 120
        assert config.gripper_close_angle == 30

    def test_default_settle_profile(self):
        settle = SettleProfile()
        assert settle.move_ms == 500
        assert settle.gripper_ms == 300
        assert settle.mode_ms == 50
        assert settle.query_ms == 200

    def test_config_validation(self):
        with pytest.raises(ValidationError):
            ArmConfig(baudrate=0)
        with pytest.raises(ValidationError):
            SettleProfile(move_ms=-1)

    def test_nested_config_from_mapping(self):
        config = ArmConfig(**{"port": "COM7", "settle": {"move_ms": 800}})
        assert config.port == "COM7"
        assert config.settle.move_ms == 800
        assert config.settle.mode_ms == 50


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
