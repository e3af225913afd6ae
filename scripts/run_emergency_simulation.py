import csv
import os
import random
from datetime import timedelta
from decimal import Decimal
from typing import List

from dispatch import ConflictError, EmergencyDispatcher, NotFoundError, rank_candidates
from orders import InMemoryEmergencyOrderStore, Pharmacist
from orders.models import utcnow
from pharmacies import (
    InMemoryGeoDirectory,
    InMemoryProductCatalog,
    InMemoryUserDirectory,
    Pharmacy,
    Product,
    StockItem,
)

# Downtown Amman, GeoJSON order
CITY_CENTER = (35.9106, 31.9539)

PRODUCTS = [
    Product(id="prod_panadol", name="Panadol Extra 500mg", sub_category="Painkillers"),
    Product(id="prod_brufen", name="Brufen 400mg", sub_category="Painkillers"),
    Product(id="prod_ventolin", name="Ventolin Inhaler", sub_category="Respiratory"),
    Product(id="prod_augmentin", name="Augmentin 1g", sub_category="Antibiotics"),
]


class SimulationClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


def build_pharmacies(count=25, seed=7) -> List[Pharmacy]:
    rng = random.Random(seed)
    pharmacies = []
    for i in range(count):
        # Scatter up to ~7 km around the center so some fall outside the radius
        offset_lng = (rng.random() - 0.5) * 0.15
        offset_lat = (rng.random() - 0.5) * 0.12
        stock = [
            StockItem(product_id=p.id, quantity=rng.randint(1, 40), price=Decimal("3.25"))
            for p in PRODUCTS if rng.random() < 0.5
        ]
        pharmacies.append(
            Pharmacy.new(
                f"ph_{i:02d}",
                CITY_CENTER[0] + offset_lng,
                CITY_CENTER[1] + offset_lat,
                name=f"Pharmacy {i:02d}",
                is_active=rng.random() > 0.1,
                average_rating=round(rng.uniform(0, 5), 1),
                stock=stock,
            )
        )
    return pharmacies


def run_simulation(requests=20, seed=7):
    print("=== STARTING EMERGENCY ORDER SIMULATION ===")
    rng = random.Random(seed)

    # 1. Load Data
    directory = InMemoryGeoDirectory()
    for pharmacy in build_pharmacies(seed=seed):
        directory.add(pharmacy)

    catalog = InMemoryProductCatalog()
    for product in PRODUCTS:
        catalog.add(product)

    users = InMemoryUserDirectory()
    for u in range(requests):
        users.set_location(
            f"user_{u:02d}",
            (CITY_CENTER[0] + (rng.random() - 0.5) * 0.06, CITY_CENTER[1] + (rng.random() - 0.5) * 0.05),
        )

    # 2. Configure System
    store = InMemoryEmergencyOrderStore()
    clock = SimulationClock(utcnow())
    dispatcher = EmergencyDispatcher(store, directory, catalog, users, clock=clock)
    print(f"Loaded {len(PRODUCTS)} products, {requests} requesters.\n")

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    output_path = os.path.join(base_dir, "emergency_results.csv")

    outcomes = {"accepted": 0, "fulfilled": 0, "no_response": 0, "unserved": 0}

    with open(output_path, "w", newline='') as file:
        writer = csv.writer(file)
        writer.writerow(["order_id", "medicine", "targets", "accepted_by", "final_status"])

        # 3. Requesters place orders
        print("--- Placing Orders ---")
        for u in range(requests):
            user_id = f"user_{u:02d}"
            medicine = rng.choice(["panadol", "brufen", "ventolin", "augmentin"])
            try:
                order = dispatcher.create_smart_emergency_order(
                    user_id, requested_medicine_name=medicine, delivery_address=f"Street {u}",
                )
            except NotFoundError as exc:
                outcomes["unserved"] += 1
                writer.writerow(["-", medicine, 0, "-", "unserved"])
                print(f"[UNSERVED] {user_id} asked for {medicine}: {exc}")
                continue

            ranked = rank_candidates(
                directory.find_active_near(order.location, dispatcher.policy.search_radius_m),
                catalog.find_by_name(medicine).id,
            )
            scores = {c.pharmacy_id: round(c.score, 1) for c in ranked}
            print(f"Order {order.id[:8]} ({order.requested_medicine_name}) -> "
                  f"{[(pid, scores[pid]) for pid in order.targeted_pharmacy_ids]}")

            # 4. Targeted pharmacies answer in random order; ~30% of orders get no answer
            if rng.random() < 0.3:
                continue

            responders = list(order.targeted_pharmacy_ids)
            rng.shuffle(responders)
            for pharmacy_id in responders:
                decision = "accepted" if rng.random() < 0.6 else "rejected"
                try:
                    dispatcher.record_pharmacy_response(
                        order.id, Pharmacist(user_id=f"owner_{pharmacy_id}", pharmacy_id=pharmacy_id), decision,
                    )
                except ConflictError:
                    # Someone else already took it
                    print(f"  [LATE] {pharmacy_id} tried to {decision} after the order was taken")

        # 5. Let the deadline pass and sweep
        clock.now = clock.now + timedelta(minutes=dispatcher.policy.default_response_timeout_minutes + 1)
        expired = dispatcher.process_order_timeouts()
        print(f"\nSweeper moved {expired} orders to no_response.")

        # 6. Half of the accepted orders get delivered
        for u in range(requests):
            for order in dispatcher.list_orders_for_user(f"user_{u:02d}"):
                if order.accepted_pharmacy_id and rng.random() < 0.5:
                    order = dispatcher.fulfill_order(
                        order.id,
                        Pharmacist(user_id=f"owner_{order.accepted_pharmacy_id}", pharmacy_id=order.accepted_pharmacy_id),
                    )
                outcomes[order.status.value] = outcomes.get(order.status.value, 0) + 1
                writer.writerow([
                    order.id,
                    order.requested_medicine_name,
                    len(order.targeted_pharmacy_ids),
                    order.accepted_pharmacy_id or "-",
                    order.status.value,
                ])

    print("\n=== SIMULATION COMPLETE ===")
    for status, count in outcomes.items():
        print(f"{status:>12}: {count}")
    print(f"Results written to '{output_path}'.")


if __name__ == "__main__":
    run_simulation()
