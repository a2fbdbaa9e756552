from __future__ import annotations

import pytest

from conftest import START_MS, run
from kombucha_store.context import SessionContext
from kombucha_store.errors import ContractViolationError, NotFoundError
from kombucha_store.records.analytics import TimeRange
from kombucha_store.services.admin import AdminService
from kombucha_store.services.analytics import AnalyticsService
from kombucha_store.services.batches import BatchService
from kombucha_store.services.equipment import EquipmentService
from kombucha_store.services.quality import QualityService

DAY = 86_400_000


def _events(ctx, event_type):
    return [e for e in run(ctx.repositories.audit.get_user_activity(ctx.owner_id)) if e["eventType"] == event_type]


def test_session_requires_owner(repos):
    with pytest.raises(ContractViolationError):
        SessionContext(owner_id="", repositories=repos)


class TestBatchService:
    def test_create_batch_assigns_code_and_history(self, alice, clock):
        service = BatchService(alice)
        batch = run(service.create_batch("LimeAid", 20, teaType="green", currentEquipmentId="f1"))

        assert batch["batchCode"] == {"code": "20240315-0001-1F00", "childCodes": [], "lineage": ["20240315-0001-1F00"]}
        assert batch["batchNumber"] == 1
        assert batch["batchDate"] == START_MS
        assert batch["stage"] == "1F"
        assert batch["stageHistory"] == [{"stage": "1F", "startTime": clock.now, "equipmentId": "f1"}]
        assert batch["createdBy"] == "alice"
        assert batch["lastModifiedBy"] == "alice"

        [event] = _events(alice, "BATCH_CREATE")
        assert event["entityId"] == batch["id"]

    def test_batch_numbers_increase_per_day(self, alice):
        service = BatchService(alice)
        first = run(service.create_batch("A", 5))
        second = run(service.create_batch("B", 5, batch_type="KEG"))
        other_day = run(service.create_batch("C", 5, batch_date=START_MS + DAY))

        assert first["batchCode"]["code"] == "20240315-0001-1F00"
        assert second["batchCode"]["code"] == "20240315-0002-KEG0"
        assert second["stage"] == "KEGGED"
        assert other_day["batchCode"]["code"] == "20240316-0001-1F00"

    def test_numbers_are_per_owner(self, alice, bob):
        run(BatchService(alice).create_batch("A", 5))
        theirs = run(BatchService(bob).create_batch("B", 5))
        assert theirs["batchNumber"] == 1

    def test_child_batch_lineage(self, alice):
        service = BatchService(alice)
        parent = run(service.create_batch("LimeAid", 20))
        child = run(service.create_child_batch(parent["id"], "LimeAid 2F", 5, batch_type="BOTTLE"))

        assert child["parentBatchId"] == parent["id"]
        assert child["stage"] == "BOTTLED"
        assert child["batchCode"]["code"] == "20240315-0002-BTL0"
        assert child["batchCode"]["parentCode"] == parent["batchCode"]["code"]
        assert child["batchCode"]["lineage"] == ["20240315-0001-1F00", "20240315-0002-BTL0"]

        parent = run(service.get_batch(parent["id"]))
        assert parent["childBatchIds"] == [child["id"]]
        assert parent["batchCode"]["childCodes"] == ["20240315-0002-BTL0"]

    def test_child_of_someone_elses_batch(self, alice, bob):
        parent = run(BatchService(alice).create_batch("LimeAid", 20))
        with pytest.raises(NotFoundError):
            run(BatchService(bob).create_child_batch(parent["id"], "stolen", 5))

    def test_update_and_change_stage_are_audited(self, alice, clock):
        service = BatchService(alice)
        batch = run(service.create_batch("LimeAid", 20))
        clock.advance()

        updated = run(service.update_batch(batch["id"], {"notes": "tart"}))
        assert updated["notes"] == "tart"

        changed = run(service.change_stage(batch["id"], "2F", notes="flavored"))
        assert changed["stage"] == "2F"
        run(service.change_stage(batch["id"], "2F"))

        updates = _events(alice, "BATCH_UPDATE")
        assert len(updates) == 2
        assert updates[1]["changes"] == {"stage": {"from": "1F", "to": "2F"}}

    def test_list_newest_first_and_delete(self, alice, bob, clock):
        service = BatchService(alice)
        older = run(service.create_batch("A", 5))
        clock.advance()
        newer = run(service.create_batch("B", 5))
        run(BatchService(bob).create_batch("C", 5))

        assert [b["id"] for b in run(service.list_batches())] == [newer["id"], older["id"]]

        run(service.delete_batch(older["id"]))
        assert run(service.get_batch(older["id"])) is None
        [event] = _events(alice, "BATCH_DELETE")
        assert event["changes"] == {"batchCode": older["batchCode"]["code"]}
        with pytest.raises(NotFoundError):
            run(service.delete_batch(older["id"]))


class TestEquipmentService:
    def test_register_and_change_status(self, alice):
        service = EquipmentService(alice)
        fermenter = run(service.register_equipment("Fermenter A", "FERMENTER", 5, description="primary"))
        assert fermenter["status"]["current"] == "AVAILABLE"
        assert fermenter["metadata"]["createdBy"] == "alice"

        fermenter = run(service.set_equipment_status(fermenter["id"], "IN_USE", current_batch_id="b1"))
        assert fermenter["status"]["currentBatchId"] == "b1"

        [event] = _events(alice, "EQUIPMENT_STATUS_CHANGE")
        assert event["changes"] == {"status": {"from": "AVAILABLE", "to": "IN_USE"}}

    def test_containers(self, alice):
        service = EquipmentService(alice)
        keg = run(service.register_container("Keg 1", "KEG", 5))
        assert keg["status"]["current"] == "EMPTY"

        keg = run(service.set_container_status(keg["id"], "FILLED", current_batch_id="b1"))
        assert "fillDate" in keg["status"]
        assert len(_events(alice, "CONTAINER_STATUS_CHANGE")) == 1
        assert [c["id"] for c in run(service.list_containers())] == [keg["id"]]

    def test_maintenance(self, alice):
        service = EquipmentService(alice)
        kettle = run(service.register_equipment("Kettle", "KETTLE", 20))
        kettle = run(service.record_maintenance(kettle["id"], maintained=True))
        assert "lastMaintained" in kettle["maintenance"]


class TestQualityService:
    def test_record_pass_and_fail(self, alice):
        batch = run(BatchService(alice).create_batch("LimeAid", 20))
        service = QualityService(alice)
        run(service.record_check(batch["id"], "PH", "PASS", value=3.2, unit="pH"))
        failed = run(service.record_check(batch["id"], "TASTE", "FAIL", notes="vinegar"))

        assert len(run(service.get_checks(batch["id"]))) == 2
        assert run(service.get_failed_checks(batch["id"])) == [failed]
        assert len(_events(alice, "QUALITY_CHECK_ADDED")) == 2
        [event] = run(alice.repositories.audit.get_failed_quality_checks("alice"))
        assert event["entityId"] == failed["id"]

    def test_checks_require_owned_batch(self, alice, bob):
        batch = run(BatchService(alice).create_batch("LimeAid", 20))
        with pytest.raises(NotFoundError):
            run(QualityService(bob).record_check(batch["id"], "PH", "PASS"))


class TestAnalyticsService:
    def test_metrics_over_callers_data(self, alice, bob, clock):
        batches = BatchService(alice)
        batch = run(batches.create_batch("LimeAid", 20, currentEquipmentId="f1"))
        run(batches.add_measurement(batch["id"], "ph", 3.4))
        run(QualityService(alice).record_check(batch["id"], "PH", "PASS"))
        run(BatchService(bob).create_batch("Other", 99))
        clock.advance(2 * DAY)

        service = AnalyticsService(alice)
        window = TimeRange(START_MS - DAY, START_MS + DAY)

        metrics = run(service.batch_metrics(batch["id"]))
        assert metrics.duration == 2 * DAY
        assert len(metrics.measurements) == 1
        assert len(metrics.quality_checks) == 1

        assert [p.value for p in run(service.performance_data(batch["id"], window))["ph"]] == [3.4]
        assert run(service.quality_metrics(window)).pass_rate == pytest.approx(100.0)

        production = run(service.production_metrics(window))
        assert production.total_batches == 1
        assert production.total_volume == pytest.approx(20.0)
        assert production.equipment_utilization == {"f1": 1}


class TestAdminService:
    def test_seed_and_clear_user_data(self, alice, bob):
        run(BatchService(bob).create_batch("Bob's", 5))
        summary = run(AdminService(alice).seed_sample_data())

        assert len(summary.equipment_ids) == 3
        assert len(summary.batch_ids) == 3
        assert len(summary.container_ids) == 2
        assert len(run(alice.repositories.batches.get_all("alice"))) == 3
        in_use = run(alice.repositories.equipment.get_in_use("alice"))
        assert sorted(e["id"] for e in in_use) == sorted(summary.equipment_ids[:2])

        # Seeding again replaces rather than duplicates.
        run(AdminService(alice).seed_sample_data())
        assert len(run(alice.repositories.batches.get_all("alice"))) == 3

        counts = run(AdminService(alice).clear_user_data())
        assert counts["batches"] == 3
        assert run(alice.repositories.batches.get_all("alice")) == []
        assert run(alice.repositories.audit.get_all("alice")) == []
        assert len(run(bob.repositories.batches.get_all("bob"))) == 1

    def test_clear_all_collections(self, alice, bob, tree):
        run(BatchService(bob).create_batch("Bob's", 5))
        run(AdminService(alice).seed_sample_data())
        run(AdminService(alice).clear_all_collections())
        assert tree.snapshot() == {}
