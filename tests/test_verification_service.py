import sqlite3
import threading

import pytest

from checkin.modules.verification_service import (
    ALREADY_VERIFIED,
    EVENT_NOT_FOUND_OR_UNAUTHORIZED,
    INTERNAL_FAILURE,
    INVALID_PAYLOAD,
    REGISTRATION_NOT_FOUND,
    VERIFIED_NOW,
    Requester,
    VerificationService,
)


def test_first_scan_verifies_second_reports_already_verified(verification_service, event, organizer,
                                                            registration, registration_manager):
    payload = registration["qr_data"]
    requester = Requester.organizer(organizer["id"])

    first = verification_service.verify_and_check_in(payload, event["id"], requester)
    second = verification_service.verify_and_check_in(payload, event["id"], requester)

    assert first.status == VERIFIED_NOW
    assert first.registration == {
        "id": registration["registration"]["id"],
        "name": "Ada Attendee",
        "email": "ada@example.com",
        "verified": True,
    }
    assert second.status == ALREADY_VERIFIED
    assert second.registration["verified"] is True
    stored = registration_manager.get_registration_by_id(registration["registration"]["id"])
    assert stored["verified"] == 1


def test_concurrent_scans_verify_exactly_once(verification_service, event, registration):
    payload = registration["qr_data"]
    scanners = 8
    barrier = threading.Barrier(scanners)
    statuses = []
    lock = threading.Lock()

    def scan():
        barrier.wait()
        outcome = verification_service.verify_and_check_in(payload, event["id"], Requester.public())
        with lock:
            statuses.append(outcome.status)

    threads = [threading.Thread(target=scan) for _ in range(scanners)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert statuses.count(VERIFIED_NOW) == 1
    assert statuses.count(ALREADY_VERIFIED) == scanners - 1


@pytest.mark.parametrize("fmt", [
    "{event}:{registration}",
    "https://checkin.example/verify/{event}/{registration}",
    "{registration}",
    '{{"id": "{registration}"}}',
])
def test_legacy_formats_check_in(verification_service, event, registration, fmt):
    raw = fmt.format(event=event["id"], registration=registration["registration"]["id"])

    outcome = verification_service.verify_and_check_in(raw, event["id"], Requester.public())

    assert outcome.status == VERIFIED_NOW


def test_invalid_payload_echoes_raw_input(verification_service, event, organizer):
    outcome = verification_service.verify_and_check_in(
        "not a qr payload at all", event["id"], Requester.organizer(organizer["id"])
    )

    assert outcome.status == INVALID_PAYLOAD
    assert "not a qr payload at all" in outcome.diagnostic
    assert outcome.registration is None


def test_unowned_event_is_refused_regardless_of_payload(verification_service, event, other_organizer,
                                                        registration, registration_manager):
    requester = Requester.organizer(other_organizer["id"])

    valid = verification_service.verify_and_check_in(registration["qr_data"], event["id"], requester)
    garbage = verification_service.verify_and_check_in("garbage", event["id"], requester)

    assert valid.status == EVENT_NOT_FOUND_OR_UNAUTHORIZED
    assert garbage.status == EVENT_NOT_FOUND_OR_UNAUTHORIZED
    stored = registration_manager.get_registration_by_id(registration["registration"]["id"])
    assert stored["verified"] == 0


def test_public_path_requires_existing_event(verification_service, registration):
    outcome = verification_service.verify_and_check_in(registration["qr_data"], "missing-event", Requester.public())

    assert outcome.status == EVENT_NOT_FOUND_OR_UNAUTHORIZED


def test_registration_from_other_event_is_not_found(verification_service, event_manager, registration_manager,
                                                    organizer, event):
    other_event = event_manager.create_event(organizer["id"], {"title": "Autumn Meetup"})["event"]
    foreign = registration_manager.create_registration(other_event, {"name": "Bo", "email": "bo@example.com"})
    foreign_id = foreign["registration"]["id"]
    requester = Requester.organizer(organizer["id"])

    bare = verification_service.verify_and_check_in(foreign_id, event["id"], requester)
    full = verification_service.verify_and_check_in(foreign["qr_data"], event["id"], requester)

    assert bare.status == REGISTRATION_NOT_FOUND
    assert foreign_id in bare.diagnostic and event["id"] in bare.diagnostic
    assert full.status == REGISTRATION_NOT_FOUND
    assert registration_manager.get_registration_by_id(foreign_id)["verified"] == 0


def test_unknown_registration_is_not_found(verification_service, event):
    outcome = verification_service.verify_and_check_in(
        "a1b2c3d4-e5f6-7890-abcd-ef1234567890", event["id"], Requester.public()
    )

    assert outcome.status == REGISTRATION_NOT_FOUND
    assert outcome.registration_id == "a1b2c3d4-e5f6-7890-abcd-ef1234567890"
    assert outcome.event_id == event["id"]


def test_organizer_override_can_reset_then_check_in_again(verification_service, registration_manager,
                                                          organizer, event, registration):
    registration_id = registration["registration"]["id"]
    verification_service.verify_and_check_in(registration["qr_data"], event["id"], Requester.public())

    reset = registration_manager.set_verification(registration_id, organizer["id"], False)
    outcome = verification_service.verify_and_check_in(registration["qr_data"], event["id"], Requester.public())

    assert reset["success"] and reset["registration"]["verified"] is False
    assert outcome.status == VERIFIED_NOW


class FakeEvents:
    def get_event(self, event_id):
        return {"id": event_id}

    def get_event_for_owner(self, event_id, organizer_id):
        return {"id": event_id}


class LosingRaceRegistrations:
    """Sees the registration unverified, then loses the conditional update."""

    def __init__(self):
        self.reads = 0

    def get_registration(self, registration_id, event_id):
        self.reads += 1
        return {"id": registration_id, "name": "Cy", "email": "cy@example.com", "verified": self.reads > 1}

    def mark_verified(self, registration_id, event_id):
        return False


class LockedRegistrations:
    def get_registration(self, registration_id, event_id):
        raise sqlite3.OperationalError("database is locked")


def test_losing_the_update_race_reports_already_verified():
    service = VerificationService(FakeEvents(), LosingRaceRegistrations())

    outcome = service.verify_and_check_in("evt:reg", "evt", Requester.public())

    assert outcome.status == ALREADY_VERIFIED
    assert outcome.registration["verified"] is True


def test_storage_timeout_is_internal_failure():
    service = VerificationService(FakeEvents(), LockedRegistrations())

    outcome = service.verify_and_check_in("evt:reg", "evt", Requester.public())

    assert outcome.status == INTERNAL_FAILURE
    assert not outcome.succeeded
    assert "database is locked" in outcome.diagnostic


def test_organizer_requester_needs_identity():
    with pytest.raises(ValueError):
        Requester.organizer("")
    assert Requester.public().requires_ownership is False


def test_deeply_nested_scan_is_invalid_payload(verification_service, event):
    outcome = verification_service.verify_and_check_in("[" * 100000, event["id"], Requester.public())

    assert outcome.status == INVALID_PAYLOAD
    assert outcome.extra["error_type"] == "unrecognized_format"


def test_non_text_scan_is_invalid_payload(verification_service, event, organizer):
    outcome = verification_service.verify_and_check_in(12345, event["id"], Requester.organizer(organizer["id"]))

    assert outcome.status == INVALID_PAYLOAD
    assert outcome.diagnostic == "Received: 12345"
