#!/usr/bin/env python3
"""
Traffic generator for the storefront monitoring demo
Simulates shoppers signing up, browsing the catalog, filling carts and checking out
"""

import random
import threading
import time
import uuid
from datetime import datetime

import requests

API_URL = "http://localhost:8000"
PASSWORD = "password123"
WELCOME_COUPON = "WELCOME3000"

# Weight for actions once a shopper is logged in
ACTION_WEIGHTS = {
    "browse": 0.35,
    "add_to_cart": 0.30,
    "checkout": 0.15,
    "view_cart": 0.10,
    "view_orders": 0.05,
    "cancel_order": 0.05,
}


def log(message):
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


class Shopper:
    def __init__(self, name):
        self.name = name
        self.email = f"{name}-{uuid.uuid4().hex[:8]}@example.com"
        self.access_token = None
        self.products = []
        self.order_ids = []

    def headers(self):
        return {"Authorization": f"Bearer {self.access_token}"}

    def signup_and_login(self):
        """Create an account, log in and claim the welcome coupon."""
        try:
            requests.post(
                f"{API_URL}/api/auth/signup",
                json={"email": self.email, "user_name": self.name, "password": PASSWORD},
                timeout=5
            )

            password = PASSWORD
            # Simulate login failures (~2%)
            if random.random() < 0.02:
                password = "wrong_password"

            response = requests.post(
                f"{API_URL}/api/auth/login",
                json={"email": self.email, "password": password},
                timeout=5
            )
            if response.status_code != 200:
                log(f"{self.name}: Login failed - {response.status_code}")
                return False

            self.access_token = response.json()["access_token"]
            log(f"{self.name}: Logged in as {self.email}")

            requests.post(
                f"{API_URL}/api/coupons/issue",
                json={"code": WELCOME_COUPON},
                headers=self.headers(),
                timeout=5
            )
            return True
        except requests.RequestException as e:
            log(f"{self.name}: Authentication error - {e}")
            return False

    def fetch_products(self):
        try:
            response = requests.get(
                f"{API_URL}/api/products",
                params={"page": 0, "size": 20, "sortField": random.choice(["price", "created_at"])},
                timeout=5
            )
            if response.status_code == 200:
                self.products = response.json()["products"]
                log(f"{self.name}: Fetched {len(self.products)} products")
                return True
        except requests.RequestException as e:
            log(f"{self.name}: Failed to fetch products - {e}")
        return False

    def browse_products(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.get(f"{API_URL}/api/products/{product['id']}", timeout=5)
                if response.status_code == 200:
                    log(f"{self.name}: Browsing {product['product_name']}")
                    return True
            except requests.RequestException as e:
                log(f"{self.name}: Failed to browse product - {e}")
        return False

    def add_to_cart(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.post(
                    f"{API_URL}/api/carts",
                    json={"product_id": product["id"], "quantity": random.randint(1, 3)},
                    headers=self.headers(),
                    timeout=5
                )
                if response.status_code == 201:
                    log(f"{self.name}: Added {product['product_name']} to cart")
                    return True
                log(f"{self.name}: Failed to add to cart - {response.json()['error']['code']}")
            except requests.RequestException as e:
                log(f"{self.name}: Failed to add to cart - {e}")
        return False

    def view_cart(self):
        try:
            response = requests.get(f"{API_URL}/api/carts/count", headers=self.headers(), timeout=5)
            if response.status_code == 200:
                log(f"{self.name}: Viewing cart with {response.json()['count']} items")
                return True
        except requests.RequestException as e:
            log(f"{self.name}: Failed to view cart - {e}")
        return False

    def _unused_coupon_id(self):
        response = requests.get(f"{API_URL}/api/coupons", headers=self.headers(), timeout=5)
        if response.status_code == 200 and response.json():
            return response.json()[0]["id"]
        return None

    def checkout(self):
        try:
            response = requests.get(f"{API_URL}/api/orders/create-data", headers=self.headers(), timeout=5)
            cart_products = response.json().get("products", []) if response.status_code == 200 else []
            if not cart_products:
                log(f"{self.name}: Nothing to check out")
                return False

            coupon_id = self._unused_coupon_id()
            items = []
            for index, line in enumerate(cart_products):
                total = line["price"] * line["quantity"]
                item = {"product_id": line["product_id"], "discounted_total_price": total}
                if index == 0 and coupon_id is not None:
                    item["coupon_member_id"] = coupon_id
                    item["discounted_total_price"] = max(total - 3000, 0)
                items.append(item)

            response = requests.post(
                f"{API_URL}/api/orders",
                json={
                    "delivery_address": f"{random.randint(1, 200)} Market Street",
                    "delivery_receiver": self.name,
                    "delivery_phone": "010-0000-0000",
                    "delivery_fee": 3000,
                    "order_items": items,
                },
                headers=self.headers(),
                timeout=10
            )
            if response.status_code == 201:
                order = response.json()
                self.order_ids.append(order["id"])
                log(f"{self.name}: Checkout successful - Order {order['id']} ({order['total_price']})")
                return True
            log(f"{self.name}: Checkout failed - {response.json()['error']['code']}")
        except requests.RequestException as e:
            log(f"{self.name}: Checkout failed - {e}")
        return False

    def view_orders(self):
        try:
            response = requests.get(
                f"{API_URL}/api/orders",
                params={"page": 1},
                headers=self.headers(),
                timeout=5
            )
            if response.status_code == 200:
                log(f"{self.name}: Viewing {len(response.json()['orders'])} orders")
                return True
        except requests.RequestException as e:
            log(f"{self.name}: Failed to view orders - {e}")
        return False

    def cancel_order(self):
        if not self.order_ids:
            return False

        order_id = self.order_ids.pop()
        try:
            response = requests.patch(
                f"{API_URL}/api/orders/{order_id}/cancel",
                headers=self.headers(),
                timeout=5
            )
            if response.status_code == 200:
                log(f"{self.name}: Cancelled order {order_id}")
                return True
        except requests.RequestException as e:
            log(f"{self.name}: Failed to cancel order - {e}")
        return False

    def random_action(self):
        action = random.choices(
            list(ACTION_WEIGHTS.keys()),
            weights=list(ACTION_WEIGHTS.values())
        )[0]

        if action == "browse":
            return self.browse_products()
        elif action == "add_to_cart":
            return self.add_to_cart()
        elif action == "checkout":
            return self.checkout()
        elif action == "view_cart":
            return self.view_cart()
        elif action == "view_orders":
            return self.view_orders()
        elif action == "cancel_order":
            return self.cancel_order()


def shopper_session(name, duration_seconds, shopper_type="browser"):
    """
    Simulate a shopper session

    shopper_type:
    - "browser": Only browses the catalog (50%)
    - "cart_abandoner": Fills a cart but never checks out (30%)
    - "buyer": Fills a cart and checks out (20%)
    """
    shopper = Shopper(name)
    end_time = time.time() + duration_seconds

    shopper.fetch_products()
    for _ in range(random.randint(2, 5)):
        shopper.browse_products()
        time.sleep(random.uniform(0.5, 1.5))

    if shopper_type == "browser":
        while time.time() < end_time:
            shopper.browse_products()
            time.sleep(random.uniform(0.3, 0.8))
        return

    if not shopper.signup_and_login():
        return

    for _ in range(random.randint(1, 3)):
        shopper.add_to_cart()
        time.sleep(random.uniform(0.3, 0.8))

    while time.time() < end_time:
        if shopper_type == "cart_abandoner":
            random.choice([shopper.browse_products, shopper.view_cart])()
        else:
            shopper.random_action()
        time.sleep(random.uniform(0.5, 1.5))


def generate_traffic(num_concurrent_users=5, session_duration=60):
    """Generate traffic with multiple concurrent shoppers"""
    log(f"Starting traffic generation with {num_concurrent_users} concurrent shoppers")
    log(f"Session duration: {session_duration} seconds")
    log("Shopper mix: 50% browsers, 30% cart abandoners, 20% buyers")

    threads = []
    try:
        while True:
            while len([t for t in threads if t.is_alive()]) < num_concurrent_users:
                name = f"shopper_{random.randint(1000, 9999)}"

                rand = random.random()
                if rand < 0.50:
                    shopper_type = "browser"
                elif rand < 0.80:
                    shopper_type = "cart_abandoner"
                else:
                    shopper_type = "buyer"

                thread = threading.Thread(
                    target=shopper_session,
                    args=(name, session_duration, shopper_type)
                )
                thread.start()
                threads.append(thread)

                time.sleep(random.uniform(1, 3))

            threads = [t for t in threads if t.is_alive()]
            time.sleep(5)

    except KeyboardInterrupt:
        log("Stopping traffic generation...")
        for thread in threads:
            thread.join(timeout=10)
        log("Traffic generation stopped")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate traffic for the storefront service")
    parser.add_argument("--users", type=int, default=5, help="Number of concurrent shoppers (default: 5)")
    parser.add_argument("--duration", type=int, default=60, help="Session duration in seconds (default: 60)")
    parser.add_argument("--url", type=str, default="http://localhost:8000", help="API URL")

    args = parser.parse_args()
    API_URL = args.url

    log("=" * 60)
    log("Storefront Traffic Generator")
    log(f"API URL: {API_URL}")
    log("=" * 60)

    generate_traffic(args.users, args.duration)
