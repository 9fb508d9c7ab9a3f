from locust import HttpUser, task, between
import random

class StudentUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # A fresh student identity per simulated client
        n = random.randint(1, 1_000_000)
        self.email = f"student_{n}@example.com"
        self.menu = []
        r = self.client.get("/menu")
        if r.status_code == 200:
            self.menu = r.json()

    @task(5)
    def browse_menu(self):
        self.client.get("/menu")

    @task(1)
    def browse_categories(self):
        self.client.get("/menu/categories/list")

    @task(3)
    def place_order(self):
        if not self.menu:
            return
        picks = random.sample(self.menu, k=min(len(self.menu), random.randint(1, 3)))
        items = [
            {"menuId": m["id"], "name": m["name"], "price": m["price"], "quantity": random.randint(1, 2)}
            for m in picks
        ]
        self.client.post("/orders", json={"studentEmail": self.email, "items": items})

    @task(2)
    def my_orders(self):
        self.client.get(f"/orders/email/{self.email}", name="/orders/email/[email]")
