"""Tests for the channel table and mapping rules."""

import json

import pytest

from src.config.errors import ChannelTableError, ConfigError
from src.mapping.channels import (
    DEFAULT_CHANNEL_NAMES,
    LEFT_FINGER,
    RIGHT_FINGER,
    ChannelRole,
    ChannelTable,
    MappingRule,
    identity_rules,
)


class TestMappingRule:
    def test_forward_scale_offset(self):
        rule = MappingRule(0, 0, scale=2.0, offset=0.5)
        assert rule.forward(1.0) == pytest.approx(2.5)

    def test_forward_invert_negates_after_offset(self):
        rule = MappingRule(0, 0, scale=2.0, offset=0.5, invert=True)
        assert rule.forward(1.0) == pytest.approx(-2.5)

    def test_inverse_undoes_forward(self):
        rule = MappingRule(3, 1, scale=-1.5, offset=0.2, invert=True)
        for v in (-1.0, 0.0, 0.37, 2.0):
            assert rule.inverse(rule.forward(v)) == pytest.approx(v)

    def test_rate_ignores_offset(self):
        rule = MappingRule(0, 0, scale=2.0, offset=10.0, invert=True)
        assert rule.forward_rate(1.0) == pytest.approx(-2.0)
        assert rule.inverse_rate(-2.0) == pytest.approx(1.0)

    def test_zero_scale_is_non_invertible(self):
        rule = MappingRule(0, 0, scale=0.0, offset=1.0)
        assert rule.inverse(1.0) is None
        assert rule.inverse_rate(1.0) is None

    def test_from_dict_missing_key(self):
        with pytest.raises(ChannelTableError):
            MappingRule.from_dict({"external_index": 0})


class TestChannelTableDefault:
    def test_channels_and_roles(self, table):
        assert table.channel_names == DEFAULT_CHANNEL_NAMES
        roles = [c.role for c in table.channels]
        assert roles[:6] == [ChannelRole.ARM] * 6
        assert roles[LEFT_FINGER] is ChannelRole.GRIPPER_LEFT
        assert roles[RIGHT_FINGER] is ChannelRole.GRIPPER_RIGHT
        assert table.channels[LEFT_FINGER].is_gripper
        assert not table.channels[0].is_gripper

    def test_rule_partitions(self, table):
        assert [r.external_index for r in table.arm_rules] == list(range(6))
        assert [r.internal_index for r in table.gripper_rules] == [LEFT_FINGER, RIGHT_FINGER]

    def test_channel_index_lookup(self, table):
        assert table.channel_index("elbow") == 2
        assert table.channel_index("right_finger") == RIGHT_FINGER
        with pytest.raises(KeyError):
            table.channel_index("nope")

    def test_describe(self, table):
        desc = table.describe()
        assert desc["gripper"] == ["left_finger", "right_finger"]
        assert desc["waist"] == ["waist"]


class TestChannelTableValidation:
    def test_duplicate_arm_target_rejected(self):
        rules = identity_rules()
        rules[1] = MappingRule(1, 0)
        with pytest.raises(ChannelTableError, match="internal channels 0-5"):
            ChannelTable(rules)

    def test_missing_arm_slot_rejected(self):
        rules = [r for r in identity_rules() if r.external_index != 3]
        with pytest.raises(ChannelTableError, match="external slots 0-5"):
            ChannelTable(rules)

    def test_reordered_arm_is_valid(self):
        rules = [MappingRule(i, 5 - i) for i in range(6)] + identity_rules()[6:]
        table = ChannelTable(rules)
        assert table.arm_rules[0].internal_index == 5

    def test_gripper_rule_count(self):
        rules = identity_rules()[:-1]
        with pytest.raises(ChannelTableError, match="exactly 2 gripper"):
            ChannelTable(rules)

    def test_gripper_rule_must_read_slot_6(self):
        rules = identity_rules()
        rules[-1] = MappingRule(5, RIGHT_FINGER, gripper=True)
        with pytest.raises(ChannelTableError, match="slot 6"):
            ChannelTable(rules)

    def test_non_finite_scale(self):
        rules = identity_rules()
        rules[0] = MappingRule(0, 0, scale=float("nan"))
        with pytest.raises(ChannelTableError, match="Non-finite"):
            ChannelTable(rules)

    def test_duplicate_names(self):
        names = list(DEFAULT_CHANNEL_NAMES)
        names[1] = "waist"
        with pytest.raises(ChannelTableError, match="unique"):
            ChannelTable(identity_rules(), channel_names=names)

    def test_table_error_is_config_error(self):
        assert issubclass(ChannelTableError, ConfigError)


class TestChannelTablePersistence:
    def test_save_and_load(self, tmp_path, table):
        path = tmp_path / "sub" / "channels.json"
        table.save(path)
        loaded = ChannelTable.load(path)
        assert loaded.rules == table.rules
        assert loaded.channel_names == table.channel_names

    def test_load_bad_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ChannelTableError):
            ChannelTable.load(path)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ChannelTableError):
            ChannelTable.load(tmp_path / "missing.json")

    def test_from_dict_invalid_table(self, table):
        data = table.to_dict()
        data["rules"] = data["rules"][:5]
        with pytest.raises(ChannelTableError):
            ChannelTable.from_dict(data)

    def test_to_dict_is_json(self, table):
        data = json.loads(json.dumps(table.to_dict()))
        assert len(data["rules"]) == 8
