"""
District Scope Tests

A DISTRICT_SUPERVISOR only ever sees devotees of their own districts,
whatever filter the client sends. ADMIN and OFFICE see everything.

Usage:
    pytest tests/test_district_scope.py -v
"""

import pytest


def _districts(response):
    return {d["district_code"] for d in response.get_json()["devotees"]}


class TestDevoteeListScope:

    def test_supervisor_sees_only_own_district(self, login_as, chain):
        client = login_as("nadia")
        response = client.get("/api/devotees")
        assert response.status_code == 200
        assert _districts(response) == {"NADIA"}

    def test_client_filter_is_replaced_for_supervisor(self, login_as, chain):
        client = login_as("nadia")
        response = client.get("/api/devotees?district=KOLKATA")
        assert response.status_code == 200
        assert _districts(response) == {"NADIA"}

    @pytest.mark.parametrize("who", ["admin", "office"])
    def test_unrestricted_roles_see_everything(self, login_as, chain, who):
        client = login_as(who)
        assert _districts(client.get("/api/devotees")) == {"NADIA", "KOLKATA"}

    def test_unrestricted_roles_may_filter(self, login_as, chain):
        client = login_as("admin")
        assert _districts(client.get("/api/devotees?district=KOLKATA")) == {"KOLKATA"}

    def test_supervisor_without_districts_sees_nothing(self, app, login_as, users, chain):
        app.extensions["user_directory"].set_districts(users["nadia"], [])
        client = login_as("nadia")
        assert client.get("/api/devotees").get_json()["devotees"] == []

    def test_role_filter(self, login_as, chain):
        client = login_as("admin")
        response = client.get("/api/devotees?role=MALA_SENAPOTI")
        ids = {d["id"] for d in response.get_json()["devotees"]}
        assert ids == {chain["mala"], chain["kolkata"]}

    def test_unknown_role_filter(self, login_as, chain):
        client = login_as("admin")
        assert client.get("/api/devotees?role=CAPTAIN").status_code == 400


class TestSingleDevoteeScope:

    def test_in_scope(self, login_as, chain):
        client = login_as("nadia")
        response = client.get(f"/api/devotees/{chain['mala']}")
        assert response.status_code == 200
        assert response.get_json()["devotee"]["district_code"] == "NADIA"

    def test_out_of_scope_is_forbidden(self, login_as, chain):
        client = login_as("nadia")
        assert client.get(f"/api/devotees/{chain['kolkata']}").status_code == 403

    def test_missing(self, login_as, chain):
        client = login_as("admin")
        assert client.get("/api/devotees/99999").status_code == 404

    def test_requires_authentication(self, client, chain):
        assert client.get("/api/devotees").status_code == 401

    def test_district_change_applies_to_live_token(self, app, login_as, users, chain):
        client = login_as("nadia")
        app.extensions["user_directory"].set_districts(users["nadia"], ["KOLKATA"])
        assert client.get(f"/api/devotees/{chain['kolkata']}").status_code == 200
        assert client.get(f"/api/devotees/{chain['mala']}").status_code == 403


@pytest.fixture
def cross_district(member_store, chain):
    """A KOLKATA Maha reporting to the NADIA Mala, with a NADIA Chakra under it."""
    from core.hierarchy import HierarchyRole as R

    cross = member_store.create_member("Cross Das", "KOLKATA", R.MAHA_CHAKRA_SENAPOTI, reporting_to=chain["mala"])
    below = member_store.create_member("Below Das", "NADIA", R.CHAKRA_SENAPOTI, reporting_to=cross)
    other_mala = member_store.create_member("Other Mala", "NADIA", R.MALA_SENAPOTI)
    return {"cross": cross, "below": below, "other_mala": other_mala}


class TestCrossDistrictEdges:
    """Reporting edges may cross districts; scope still holds"""

    def test_direct_subordinates_are_filtered(self, login_as, chain, cross_district):
        client = login_as("nadia")
        subs = client.get(f"/api/senapoti/devotees/{chain['mala']}/subordinates").get_json()["subordinates"]
        assert [s["id"] for s in subs] == [chain["maha"]]

    def test_subtree_is_filtered(self, login_as, chain, cross_district):
        client = login_as("nadia")
        response = client.get(f"/api/senapoti/devotees/{chain['mala']}/subordinates?all=true")
        subs = response.get_json()["subordinates"]
        assert {s["district_code"] for s in subs} == {"NADIA"}
        depths = {s["id"]: s["depth"] for s in subs}
        assert cross_district["cross"] not in depths
        assert depths[cross_district["below"]] == 2

    def test_admin_sees_cross_district_rows(self, login_as, chain, cross_district):
        client = login_as("admin")
        subs = client.get(f"/api/senapoti/devotees/{chain['mala']}/subordinates").get_json()["subordinates"]
        assert [s["id"] for s in subs] == [chain["maha"], cross_district["cross"]]

    def test_role_change_cannot_move_out_of_scope_subordinates(self, login_as, member_store, chain, cross_district):
        client = login_as("nadia")
        response = client.post(f"/api/senapoti/devotees/{chain['mala']}/role-change", json={
            "change_type": "REMOVE",
            "subordinate_supervisor_id": cross_district["other_mala"],
        })
        assert response.status_code == 403
        assert member_store.get_member(chain["mala"]).leadership_role == "MALA_SENAPOTI"
        assert member_store.get_member(cross_district["cross"]).reporting_to_devotee_id == chain["mala"]

    def test_transfer_all_refuses_out_of_scope_subordinates(self, login_as, member_store, chain, cross_district):
        client = login_as("nadia")
        response = client.post("/api/senapoti/transfer-subordinates", json={
            "from_devotee_id": chain["mala"],
            "to_devotee_id": cross_district["other_mala"],
        })
        assert response.status_code == 403
        assert member_store.get_member(chain["maha"]).reporting_to_devotee_id == chain["mala"]

    def test_transfer_of_in_scope_subordinates_succeeds(self, login_as, member_store, chain, cross_district):
        client = login_as("nadia")
        response = client.post("/api/senapoti/transfer-subordinates", json={
            "from_devotee_id": chain["mala"],
            "to_devotee_id": cross_district["other_mala"],
            "subordinate_ids": [chain["maha"]],
        })
        assert response.status_code == 200, response.get_json()
        assert member_store.get_member(chain["maha"]).reporting_to_devotee_id == cross_district["other_mala"]

    def test_service_refuses_out_of_scope_move(self, hierarchy_service, member_store, users, chain, cross_district):
        from core.errors import AuthorizationError
        from core.hierarchy import RoleChangeRequest

        request = RoleChangeRequest(
            member_id=chain["mala"],
            change_type="REMOVE",
            current_role="MALA_SENAPOTI",
            changed_by=users["nadia"],
        )
        with pytest.raises(AuthorizationError):
            hierarchy_service.apply_change(
                request,
                subordinate_supervisor_id=cross_district["other_mala"],
                districts={"NADIA"},
            )
        assert member_store.role_history(chain["mala"]) == []
