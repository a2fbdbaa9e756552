from __future__ import annotations

import pytest

from conftest import batch_data, equipment_data, run
from kombucha_store.errors import NotFoundError, SchemaValidationError


def _container(repos, owner="alice"):
    return run(
        repos.containers.create(
            {
                "metadata": {"name": "Keg 1", "type": "KEG", "capacity": 5},
                "status": {"current": "EMPTY", "lastUpdated": 1},
            },
            owner,
        )
    )


class TestBatchRepository:
    def test_stages_round_trip_and_update(self, repos, clock):
        batch = run(repos.batches.create(batch_data(), "alice"))
        stage = run(repos.batches.add_stage(batch["id"], {"stage": "1F", "startTime": clock.now}, "alice"))

        clock.advance(60_000)
        updated = run(repos.batches.update_stage(batch["id"], stage["id"], {"endTime": clock.now}, "alice"))

        assert updated["endTime"] == clock.now
        assert updated["updatedAt"] == clock.now
        assert run(repos.batches.get_stages(batch["id"], "alice")) == [updated]

    def test_update_missing_stage(self, repos):
        batch = run(repos.batches.create(batch_data(), "alice"))
        with pytest.raises(NotFoundError) as excinfo:
            run(repos.batches.update_stage(batch["id"], "nope", {"notes": "x"}, "alice"))
        assert excinfo.value.resource_type == "Stage"

    def test_invalid_stage_is_rejected(self, repos, tree):
        batch = run(repos.batches.create(batch_data(), "alice"))
        with pytest.raises(SchemaValidationError):
            run(repos.batches.add_stage(batch["id"], {"stage": "3F", "startTime": 1}, "alice"))
        assert "stages" not in tree.snapshot()

    def test_measurements(self, repos, clock):
        batch = run(repos.batches.create(batch_data(), "alice"))
        ph = run(repos.batches.add_measurement(batch["id"], "ph", 3.4, "alice", notes="day 3"))
        clock.advance()
        run(repos.batches.add_measurement(batch["id"], "temperature", 24.5, "alice"))

        measurements = run(repos.batches.get_measurements(batch["id"], "alice"))
        assert len(measurements) == 2
        assert ph in measurements
        assert ph["timestamp"] == clock.now - 1000

    def test_sub_trees_are_gated_on_batch_ownership(self, repos):
        batch = run(repos.batches.create(batch_data(), "alice"))
        run(repos.batches.add_measurement(batch["id"], "ph", 3.4, "alice"))
        with pytest.raises(NotFoundError):
            run(repos.batches.get_measurements(batch["id"], "bob"))
        with pytest.raises(NotFoundError):
            run(repos.batches.add_stage(batch["id"], {"stage": "1F", "startTime": 1}, "bob"))

    def test_change_stage(self, repos, clock):
        batch = run(repos.batches.create(batch_data(stageHistory=[{"stage": "1F", "startTime": clock.now}]), "alice"))
        clock.advance(86_400_000)
        changed = run(repos.batches.change_stage(batch["id"], "2F", "alice", equipment_id="f2"))

        assert changed["stage"] == "2F"
        assert changed["currentEquipmentId"] == "f2"
        assert changed["lastModifiedBy"] == "alice"
        assert changed["stageHistory"][0]["endTime"] == clock.now
        assert changed["stageHistory"][1] == {"stage": "2F", "startTime": clock.now, "equipmentId": "f2"}

    def test_change_to_same_stage_writes_nothing(self, repos, tree):
        batch = run(repos.batches.create(batch_data(), "alice"))
        writes = list(tree.writes)
        assert run(repos.batches.change_stage(batch["id"], "1F", "alice")) == batch
        assert tree.writes == writes

    def test_delete_removes_sub_trees(self, repos, tree):
        keep = run(repos.batches.create(batch_data(name="keep"), "alice"))
        drop = run(repos.batches.create(batch_data(name="drop"), "alice"))
        for batch in (keep, drop):
            run(repos.batches.add_measurement(batch["id"], "ph", 3.1, "alice"))
            run(repos.batches.add_stage(batch["id"], {"stage": "1F", "startTime": 1}, "alice"))

        run(repos.batches.delete(drop["id"], "alice"))

        snapshot = tree.snapshot()
        assert list(snapshot["stages"]) == [keep["id"]]
        assert list(snapshot["measurements"]) == [keep["id"]]

    def test_clear_all_clears_sub_trees(self, repos, tree):
        batch = run(repos.batches.create(batch_data(), "alice"))
        run(repos.batches.add_measurement(batch["id"], "ph", 3.1, "alice"))
        run(repos.batches.clear_all())
        assert tree.snapshot() == {}


class TestEquipmentRepositories:
    def test_update_status_and_filters(self, repos, clock):
        a = run(repos.equipment.create(equipment_data(), "alice"))
        b = run(repos.equipment.create(equipment_data(), "alice"))
        clock.advance()
        run(repos.equipment.update_status(a["id"], "IN_USE", "alice", current_batch_id="b1"))

        in_use = run(repos.equipment.get_in_use("alice"))
        assert [e["id"] for e in in_use] == [a["id"]]
        assert in_use[0]["status"] == {"current": "IN_USE", "lastUpdated": clock.now, "currentBatchId": "b1"}
        assert [e["id"] for e in run(repos.equipment.get_available("alice"))] == [b["id"]]

    def test_status_change_clears_batch(self, repos):
        a = run(repos.equipment.create(equipment_data(), "alice"))
        run(repos.equipment.update_status(a["id"], "IN_USE", "alice", current_batch_id="b1"))
        run(repos.equipment.update_status(a["id"], "DIRTY", "alice"))
        assert "currentBatchId" not in run(repos.equipment.get(a["id"], "alice"))["status"]

    def test_record_maintenance(self, repos, clock):
        a = run(repos.equipment.create(equipment_data(), "alice"))
        clock.advance()
        run(repos.equipment.record_maintenance(a["id"], "alice", cleaned=True, notes="sanitized"))
        maintenance = run(repos.equipment.get(a["id"], "alice"))["maintenance"]
        assert maintenance == {"lastCleaned": clock.now, "notes": "sanitized"}

    def test_container_fill_and_empty_dates(self, repos, clock):
        keg = _container(repos)
        clock.advance()
        filled_at = clock.now
        run(repos.containers.update_status(keg["id"], "FILLED", "alice", current_batch_id="b1"))
        assert [c["id"] for c in run(repos.containers.get_filled("alice"))] == [keg["id"]]
        assert [c["id"] for c in run(repos.containers.get_by_batch("b1", "alice"))] == [keg["id"]]

        clock.advance()
        run(repos.containers.update_status(keg["id"], "EMPTY", "alice"))
        status = run(repos.containers.get(keg["id"], "alice"))["status"]
        assert status["fillDate"] == filled_at
        assert status["emptyDate"] == clock.now
        assert "currentBatchId" not in status
        assert [c["id"] for c in run(repos.containers.get_empty("alice"))] == [keg["id"]]

    def test_other_owners_containers_are_not_listed(self, repos):
        _container(repos, owner="bob")
        assert run(repos.containers.get_empty("alice")) == []


class TestUserRepository:
    def test_profile_lifecycle(self, repos, clock):
        profile = run(repos.users.create_profile("u1", "Una", "una@example.com", "u1"))
        assert profile["id"] == "u1"
        assert profile["role"] == "brewer"
        assert profile["isActive"] is True

        clock.advance()
        run(repos.users.update_last_login("u1", "u1"))
        run(repos.users.update_role("u1", "admin", "u1"))
        run(repos.users.deactivate("u1", "u1"))

        profile = run(repos.users.get("u1", "u1"))
        assert profile["lastLogin"] == clock.now
        assert profile["deactivatedAt"] == clock.now
        assert profile["isActive"] is False
        assert [u["id"] for u in run(repos.users.get_by_role("admin", "u1"))] == ["u1"]

    def test_unknown_role_is_rejected(self, repos):
        run(repos.users.create_profile("u1", "Una", "una@example.com", "u1"))
        with pytest.raises(SchemaValidationError):
            run(repos.users.update_role("u1", "owner", "u1"))


class TestAuditRepository:
    def test_activity_is_chronological(self, repos, clock):
        first = run(repos.audit.log_event("alice", "USER_LOGIN"))
        clock.advance()
        second = run(repos.audit.log_event("alice", "BATCH_CREATE", entity_type="batch", entity_id="b1", changes={"name": "x"}))
        run(repos.audit.log_event("bob", "USER_LOGIN"))

        assert run(repos.audit.get_user_activity("alice")) == [first, second]
        assert run(repos.audit.get_entity_history("batch", "b1", "alice")) == [second]

    def test_failed_quality_checks(self, repos):
        run(repos.audit.log_event("alice", "QUALITY_CHECK_ADDED"))
        failed = run(repos.audit.log_event("alice", "QUALITY_CHECK_FAILED", notes="too sour"))
        assert run(repos.audit.get_failed_quality_checks("alice")) == [failed]

    def test_unknown_event_type(self, repos):
        with pytest.raises(SchemaValidationError):
            run(repos.audit.log_event("alice", "BATCH_EXPLODED"))


class TestQualityRepository:
    def test_checks_by_batch_status_and_type(self, repos):
        run(repos.quality.add_check("b1", {"type": "PH", "status": "PASS", "value": 3.2}, "alice"))
        fail = run(repos.quality.add_check("b1", {"type": "TASTE", "status": "FAIL"}, "alice"))
        run(repos.quality.add_check("b2", {"type": "PH", "status": "FAIL"}, "alice"))

        assert len(run(repos.quality.get_checks("b1", "alice"))) == 2
        assert run(repos.quality.get_failed_checks("b1", "alice")) == [fail]
        assert run(repos.quality.get_checks_by_type("b1", "TASTE", "alice")) == [fail]
        assert run(repos.quality.get_checks("b1", "bob")) == []
