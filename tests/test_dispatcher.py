import threading
from datetime import timedelta

import pytest

from dispatch import (
    ConflictError,
    DispatchPolicy,
    EmergencyDispatcher,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    rank_candidates,
)
from orders import EmergencyOrderStatus, Pharmacist, Priority, Requester, ResponseDecision
from pharmacies import Pharmacy

from conftest import PANADOL, REQUESTER_LOCATION, stocked


def create(dispatcher, requester_id="user_1", **payload):
    payload.setdefault("requested_medicine_name", "panadol")
    payload.setdefault("delivery_address", "Rainbow St 12, Amman")
    return dispatcher.create_smart_emergency_order(requester_id, **payload)


# -------------------------
# Dispatch engine
# -------------------------

def test_panadol_scenario_targets_stocking_pharmacies_best_first(dispatcher, panadol_pharmacies, clock):
    order = create(dispatcher)

    assert order.targeted_pharmacy_ids == ["ph_near", "ph_mid"]
    assert order.requested_medicine_name == PANADOL.name
    assert order.status == EmergencyOrderStatus.PENDING
    assert order.priority == Priority.HIGH
    assert order.location == REQUESTER_LOCATION
    assert order.response_deadline == clock.now + timedelta(minutes=15)


def test_created_order_is_persisted(dispatcher, store, panadol_pharmacies):
    order = create(dispatcher)
    assert store.get(order.id) == order


def test_payload_location_wins_over_stored_location(dispatcher, directory, panadol_pharmacies):
    order = create(dispatcher, location=[35.95, 32.0])

    assert order.location == (35.95, 32.0)
    assert directory.calls[-1] == ((35.95, 32.0), 5000)


def test_missing_location_is_not_found(dispatcher, store, panadol_pharmacies):
    with pytest.raises(NotFoundError, match="user location not found"):
        create(dispatcher, requester_id="user_without_location")
    assert store.list_for_requester("user_without_location") == []


def test_unknown_medicine_is_not_found(dispatcher, panadol_pharmacies):
    with pytest.raises(NotFoundError):
        create(dispatcher, requested_medicine_name="aspirin")


def test_no_stocking_pharmacy_persists_nothing(dispatcher, store, directory):
    directory.place(Pharmacy.new("ph_empty", 35.9, 31.9, average_rating=5), 100)

    with pytest.raises(NotFoundError, match="no nearby pharmacies"):
        create(dispatcher)
    assert store.list_for_requester("user_1") == []


def test_inactive_and_distant_pharmacies_are_ignored(dispatcher, directory):
    directory.place(Pharmacy.new("ph_closed", 35.9, 31.9, is_active=False, average_rating=5, stock=stocked(PANADOL)), 50)
    directory.place(Pharmacy.new("ph_outside", 35.9, 31.9, average_rating=5, stock=stocked(PANADOL)), 5200)

    with pytest.raises(NotFoundError):
        create(dispatcher)


def test_target_set_is_bounded_and_eligible(dispatcher, directory):
    for i in range(9):
        stock = stocked(PANADOL) if i % 3 else ()
        directory.place(Pharmacy.new(f"ph_{i}", 35.9, 31.9, average_rating=i % 6, stock=stock), 400 * i)

    order = create(dispatcher)
    scored = {c.pharmacy_id: c for c in _scores(dispatcher, directory)}

    # six pharmacies qualify, only five are notified
    assert len(order.targeted_pharmacy_ids) == 5
    for pharmacy_id in order.targeted_pharmacy_ids:
        assert scored[pharmacy_id].stocks_product
        assert scored[pharmacy_id].score > 40


def _scores(dispatcher, directory):
    return rank_candidates(directory.find_active_near(REQUESTER_LOCATION, 5000), PANADOL.id, dispatcher.policy)


@pytest.mark.parametrize("payload,message", [
    ({"requested_medicine_name": "   "}, "requestedMedicineName"),
    ({"delivery_address": ""}, "deliveryAddress"),
    ({"priority": "urgent"}, "priority"),
    ({"response_timeout_minutes": 0}, "responseTimeoutMinutes"),
    ({"response_timeout_minutes": True}, "responseTimeoutMinutes"),
    ({"location": [200, 31.9]}, "Invalid coordinates"),
    ({"location": ["east", "north"]}, "longitude, latitude"),
])
def test_invalid_input_is_rejected(dispatcher, panadol_pharmacies, payload, message):
    with pytest.raises(ValidationError, match=message):
        create(dispatcher, **payload)


def test_custom_timeout_and_priority(dispatcher, panadol_pharmacies, clock):
    order = create(dispatcher, response_timeout_minutes=5, priority="normal", additional_notes="  ring twice ")

    assert order.response_deadline == clock.now + timedelta(minutes=5)
    assert order.priority == Priority.NORMAL
    assert order.additional_notes == "ring twice"


def test_policy_radius_is_used_for_the_search(store, directory, catalog, users, clock, panadol_pharmacies):
    dispatcher = EmergencyDispatcher(store, directory, catalog, users, DispatchPolicy(search_radius_m=1000), clock)

    order = create(dispatcher)

    assert order.targeted_pharmacy_ids == ["ph_near"]
    assert directory.calls[-1][1] == 1000


# -------------------------
# Response aggregator
# -------------------------

def pharmacist(pharmacy_id):
    return Pharmacist(user_id=f"owner_{pharmacy_id}", pharmacy_id=pharmacy_id)


def test_accept_sets_winner(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    updated = dispatcher.record_pharmacy_response(order.id, pharmacist("ph_mid"), "accepted")

    assert updated.status == EmergencyOrderStatus.ACCEPTED
    assert updated.accepted_pharmacy_id == "ph_mid"
    assert [r.decision for r in updated.responses] == [ResponseDecision.ACCEPTED]


def test_reject_records_reason_and_keeps_pending(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    updated = dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "rejected", " out of stock ")

    assert updated.status == EmergencyOrderStatus.PENDING
    assert updated.responses[0].rejection_reason == "out of stock"


def test_requester_cannot_respond(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    with pytest.raises(ForbiddenError):
        dispatcher.record_pharmacy_response(order.id, Requester("user_1"), "accepted")


def test_unknown_decision_is_invalid(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    with pytest.raises(ValidationError):
        dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "maybe")


def test_untargeted_pharmacy_conflicts_and_appends_nothing(dispatcher, store, panadol_pharmacies):
    order = create(dispatcher)
    with pytest.raises(ConflictError, match="order not available for response"):
        dispatcher.record_pharmacy_response(order.id, pharmacist("ph_far"), "accepted")
    assert store.get(order.id).responses == []


def test_duplicate_response_conflicts(dispatcher, store, panadol_pharmacies):
    order = create(dispatcher)
    dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "rejected")

    with pytest.raises(ConflictError):
        dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "accepted")

    responses = store.get(order.id).responses
    assert len(responses) == 1
    assert responses[0].decision == ResponseDecision.REJECTED


def test_unknown_order_conflicts(dispatcher):
    with pytest.raises(ConflictError):
        dispatcher.record_pharmacy_response("missing", pharmacist("ph_near"), "accepted")


def test_sequential_accepts_first_wins(dispatcher, store, panadol_pharmacies):
    order = create(dispatcher)
    dispatcher.record_pharmacy_response(order.id, pharmacist("ph_mid"), "accepted")

    with pytest.raises(ConflictError):
        dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "accepted")

    final = store.get(order.id)
    assert final.accepted_pharmacy_id == "ph_mid"
    assert [r.pharmacy_id for r in final.responses if r.decision == ResponseDecision.ACCEPTED] == ["ph_mid"]


def test_concurrent_accepts_exactly_one_succeeds(dispatcher, store, panadol_pharmacies):
    order = create(dispatcher)
    barrier = threading.Barrier(2)
    outcomes = {}

    def respond(pharmacy_id):
        barrier.wait()
        try:
            dispatcher.record_pharmacy_response(order.id, pharmacist(pharmacy_id), "accepted")
            outcomes[pharmacy_id] = "won"
        except ConflictError:
            outcomes[pharmacy_id] = "conflict"

    threads = [threading.Thread(target=respond, args=(pid,)) for pid in ("ph_near", "ph_mid")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes.values()) == ["conflict", "won"]
    final = store.get(order.id)
    accepted = [r for r in final.responses if r.decision == ResponseDecision.ACCEPTED]
    assert len(accepted) == 1
    assert final.accepted_pharmacy_id == accepted[0].pharmacy_id
    assert outcomes[final.accepted_pharmacy_id] == "won"


# -------------------------
# Timeouts
# -------------------------

def test_timeouts_expire_pending_only_once(dispatcher, store, panadol_pharmacies, clock):
    stale = create(dispatcher)
    taken = create(dispatcher)
    dispatcher.record_pharmacy_response(taken.id, pharmacist("ph_near"), "accepted")

    clock.advance(minutes=16)
    assert dispatcher.process_order_timeouts() == 1
    assert dispatcher.process_order_timeouts() == 0

    assert store.get(stale.id).status == EmergencyOrderStatus.NO_RESPONSE
    assert store.get(taken.id).status == EmergencyOrderStatus.ACCEPTED


def test_response_after_expiry_conflicts(dispatcher, panadol_pharmacies, clock):
    order = create(dispatcher)
    clock.advance(minutes=16)
    dispatcher.process_order_timeouts()

    with pytest.raises(ConflictError):
        dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "accepted")


def test_explicit_now_overrides_clock(dispatcher, store, panadol_pharmacies, clock):
    order = create(dispatcher)
    assert dispatcher.process_order_timeouts(now=clock.now + timedelta(hours=1)) == 1
    assert store.get(order.id).status == EmergencyOrderStatus.NO_RESPONSE


# -------------------------
# Cancellation / fulfillment
# -------------------------

def test_cancel_pending_and_no_response(dispatcher, panadol_pharmacies, clock):
    expired = create(dispatcher)
    clock.advance(minutes=16)
    dispatcher.process_order_timeouts()
    pending = create(dispatcher)

    assert dispatcher.get_order(pending.id, Requester("user_1")).status == EmergencyOrderStatus.PENDING
    assert dispatcher.cancel_order(pending.id, "user_1").status == EmergencyOrderStatus.CANCELED
    assert dispatcher.cancel_order(expired.id, "user_1").status == EmergencyOrderStatus.CANCELED


def test_cancel_by_someone_else_conflicts(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    with pytest.raises(ConflictError):
        dispatcher.cancel_order(order.id, "user_2")


def test_cancel_fulfilled_conflicts(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "accepted")
    dispatcher.fulfill_order(order.id, Requester("user_1"))

    with pytest.raises(ConflictError):
        dispatcher.cancel_order(order.id, "user_1")


def test_fulfill_by_requester_or_accepted_pharmacy(dispatcher, panadol_pharmacies):
    by_requester = create(dispatcher)
    by_pharmacy = create(dispatcher)
    for order in (by_requester, by_pharmacy):
        dispatcher.record_pharmacy_response(order.id, pharmacist("ph_mid"), "accepted")

    assert dispatcher.fulfill_order(by_requester.id, Requester("user_1")).status == EmergencyOrderStatus.FULFILLED
    assert dispatcher.fulfill_order(by_pharmacy.id, pharmacist("ph_mid")).status == EmergencyOrderStatus.FULFILLED


def test_requester_fulfilling_pending_order_conflicts(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    with pytest.raises(ConflictError):
        dispatcher.fulfill_order(order.id, Requester("user_1"))


def test_unrelated_pharmacist_cannot_fulfill(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    dispatcher.record_pharmacy_response(order.id, pharmacist("ph_mid"), "accepted")

    with pytest.raises(ForbiddenError):
        dispatcher.fulfill_order(order.id, pharmacist("ph_near"))
    with pytest.raises(ForbiddenError):
        dispatcher.fulfill_order(order.id, Requester("user_2"))


def test_fulfill_missing_order_is_not_found(dispatcher):
    with pytest.raises(NotFoundError):
        dispatcher.fulfill_order("missing", Requester("user_1"))


def test_fulfill_twice_conflicts(dispatcher, panadol_pharmacies):
    order = create(dispatcher)
    dispatcher.record_pharmacy_response(order.id, pharmacist("ph_near"), "accepted")
    dispatcher.fulfill_order(order.id, Requester("user_1"))

    with pytest.raises(ConflictError):
        dispatcher.fulfill_order(order.id, pharmacist("ph_near"))


# -------------------------
# Queries
# -------------------------

def test_get_order_visibility(dispatcher, panadol_pharmacies):
    order = create(dispatcher)

    assert dispatcher.get_order(order.id, Requester("user_1")).id == order.id
    assert dispatcher.get_order(order.id, pharmacist("ph_mid")).id == order.id
    with pytest.raises(ForbiddenError):
        dispatcher.get_order(order.id, pharmacist("ph_far"))
    with pytest.raises(ForbiddenError):
        dispatcher.get_order(order.id, Requester("user_2"))
    with pytest.raises(NotFoundError):
        dispatcher.get_order("missing", Requester("user_1"))


def test_list_queries(dispatcher, users, panadol_pharmacies, clock):
    users.set_location("user_2", REQUESTER_LOCATION)
    first = create(dispatcher, priority="normal")
    clock.advance(minutes=1)
    second = create(dispatcher)
    clock.advance(minutes=1)
    other = create(dispatcher, requester_id="user_2")
    dispatcher.record_pharmacy_response(other.id, pharmacist("ph_mid"), "accepted")

    assert [o.id for o in dispatcher.list_orders_for_user("user_1")] == [second.id, first.id]
    assert [o.id for o in dispatcher.list_orders_for_pharmacy("ph_mid")] == [second.id, first.id]
    assert dispatcher.list_orders_for_pharmacy("ph_far") == []
