"""
Senapoti Hierarchy Policy Tests

Covers the fixed role table (core/hierarchy/policy.py) and its helpers.

Usage:
    pytest tests/test_hierarchy_policy.py -v
"""

import pytest

from core.hierarchy import (
    DISTRICT_SUPERVISOR,
    ROLE_HIERARCHY,
    ChangeType,
    HierarchyRole as R,
    expected_supervisor_role,
    parse_change_type,
    parse_role,
    policy_table,
    subordinate_roles,
    valid_target_roles,
)


class TestRoleTable:
    """The table itself"""

    def test_levels_are_ordered(self):
        levels = [ROLE_HIERARCHY[r].level for r in (
            R.MALA_SENAPOTI, R.MAHA_CHAKRA_SENAPOTI, R.CHAKRA_SENAPOTI, R.UPA_CHAKRA_SENAPOTI,
        )]
        assert levels == [1, 2, 3, 4]

    def test_reporting_chain(self):
        assert expected_supervisor_role(R.MALA_SENAPOTI) == DISTRICT_SUPERVISOR
        assert expected_supervisor_role(R.MAHA_CHAKRA_SENAPOTI) == "MALA_SENAPOTI"
        assert expected_supervisor_role(R.CHAKRA_SENAPOTI) == "MAHA_CHAKRA_SENAPOTI"
        assert expected_supervisor_role("UPA_CHAKRA_SENAPOTI") == "CHAKRA_SENAPOTI"

    def test_mala_cannot_be_promoted(self):
        assert ROLE_HIERARCHY[R.MALA_SENAPOTI].can_promote_to is None

    def test_upa_chakra_cannot_be_demoted_and_manages_nobody(self):
        policy = ROLE_HIERARCHY[R.UPA_CHAKRA_SENAPOTI]
        assert policy.can_demote_to is None
        assert policy.manages == ()

    def test_each_role_manages_the_level_below(self):
        assert subordinate_roles(R.MALA_SENAPOTI) == (R.MAHA_CHAKRA_SENAPOTI,)
        assert subordinate_roles(R.MAHA_CHAKRA_SENAPOTI) == (R.CHAKRA_SENAPOTI,)
        assert subordinate_roles(R.CHAKRA_SENAPOTI) == (R.UPA_CHAKRA_SENAPOTI,)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            ROLE_HIERARCHY[R.MALA_SENAPOTI] = ROLE_HIERARCHY[R.UPA_CHAKRA_SENAPOTI]

    def test_policy_rows_are_frozen(self):
        with pytest.raises(Exception):
            ROLE_HIERARCHY[R.CHAKRA_SENAPOTI].level = 9


class TestParsing:
    """Closed enums: unknown strings are rejected, not coerced"""

    def test_parse_known_role(self):
        assert parse_role("CHAKRA_SENAPOTI") is R.CHAKRA_SENAPOTI
        assert parse_role(R.CHAKRA_SENAPOTI) is R.CHAKRA_SENAPOTI

    @pytest.mark.parametrize("value", ["chakra_senapoti", "SENAPOTI", "", "ADMIN"])
    def test_parse_unknown_role_raises(self, value):
        with pytest.raises(ValueError, match="Unknown hierarchy role"):
            parse_role(value)

    def test_parse_unknown_change_type_raises(self):
        with pytest.raises(ValueError, match="Unknown change type"):
            parse_change_type("SWAP")


class TestValidTargets:
    """valid_target_roles()"""

    def test_promote_targets_come_from_table(self):
        assert valid_target_roles(R.MAHA_CHAKRA_SENAPOTI, ChangeType.PROMOTE) == [R.MALA_SENAPOTI]
        assert valid_target_roles(R.MALA_SENAPOTI, ChangeType.PROMOTE) == []

    def test_demote_targets_come_from_table(self):
        assert valid_target_roles(R.MALA_SENAPOTI, "DEMOTE") == [
            R.MAHA_CHAKRA_SENAPOTI, R.CHAKRA_SENAPOTI, R.UPA_CHAKRA_SENAPOTI,
        ]
        assert valid_target_roles(R.UPA_CHAKRA_SENAPOTI, "DEMOTE") == []

    def test_remove_has_no_targets(self):
        assert valid_target_roles(R.CHAKRA_SENAPOTI, ChangeType.REMOVE) == []

    def test_fresh_assignment_only_through_replace(self):
        assert valid_target_roles(None, ChangeType.REPLACE) == list(R)
        assert valid_target_roles(None, ChangeType.PROMOTE) == []

    def test_policy_table_serializes_in_level_order(self):
        rows = policy_table()
        assert [row["level"] for row in rows] == [1, 2, 3, 4]
        assert rows[0]["can_promote_to"] is None
        assert rows[3]["manages"] == []
