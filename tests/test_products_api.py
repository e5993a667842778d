import os
import unittest
from uuid import uuid4

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.models.product import Product
from tests.base import ApiTestBase


class ProductApiTests(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.owner = self.create_user()
        self.museum_id = self.create_attraction(self.owner, "Museum")
        self.park_id = self.create_attraction(self.owner, "Park")

    def test_list_all_products_with_attraction_summary(self):
        self.create_product(self.museum_id, self.owner, "Ticket", price=20.0)
        self.create_product(self.park_id, self.owner, "Map", price=1.5)

        response = self.client.get("/api/v2/products")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual([row["name"] for row in body["data"]], ["Map", "Ticket"])
        self.assertEqual(
            body["data"][0]["attraction"],
            {"id": str(self.park_id), "name": "Park", "slug": "park"},
        )

    def test_list_products_with_price_filter(self):
        self.create_product(self.museum_id, self.owner, "Ticket", price=20.0)
        self.create_product(self.museum_id, self.owner, "Guide", price=5.0)
        self.create_product(self.park_id, self.owner, "Map", price=1.5)

        response = self.client.get("/api/v2/products?price[gt]=2&sort=-price&page=1&limit=1")
        body = response.json()
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["data"][0]["name"], "Ticket")
        self.assertEqual(body["pagination"], {"next": {"page": 2, "limit": 1}})

    def test_list_products_of_one_attraction(self):
        self.create_product(self.museum_id, self.owner, "Ticket")
        self.create_product(self.museum_id, self.owner, "Audio guide")
        self.create_product(self.park_id, self.owner, "Map")

        response = self.client.get(f"/api/v2/attractions/{self.museum_id}/products")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual([row["name"] for row in body["data"]], ["Audio guide", "Ticket"])
        self.assertNotIn("pagination", body)

    def test_get_single_product(self):
        product_id = self.create_product(self.museum_id, self.owner, "Ticket", price=20.0)
        response = self.client.get(f"/api/v2/products/{product_id}")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["name"], "Ticket")
        self.assertEqual(data["attraction"], {"id": str(self.museum_id), "name": "Museum", "slug": "museum"})

        missing = self.client.get(f"/api/v2/products/{uuid4()}")
        self.assertEqual(missing.status_code, 404)

    def test_owner_adds_product_to_attraction(self):
        response = self.client.post(
            f"/api/v2/attractions/{self.museum_id}/products",
            json={"name": "Ticket", "description": "Entry", "price": 12.5},
            headers=self.auth_headers(self.owner),
        )
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["attraction_id"], str(self.museum_id))
        self.assertEqual(data["user_id"], str(self.owner))
        self.assertEqual(data["price"], 12.5)

    def test_add_product_checks_attraction_and_ownership(self):
        other = self.create_user()
        denied = self.client.post(
            f"/api/v2/attractions/{self.museum_id}/products",
            json={"name": "Ticket"},
            headers=self.auth_headers(other),
        )
        self.assertEqual(denied.status_code, 403)

        missing = self.client.post(
            f"/api/v2/attractions/{uuid4()}/products",
            json={"name": "Ticket"},
            headers=self.auth_headers(self.owner),
        )
        self.assertEqual(missing.status_code, 404)

    def test_negative_price_is_rejected(self):
        response = self.client.post(
            f"/api/v2/attractions/{self.museum_id}/products",
            json={"name": "Ticket", "price": -1},
            headers=self.auth_headers(self.owner),
        )
        self.assertEqual(response.status_code, 400)

    def test_update_product(self):
        product_id = self.create_product(self.museum_id, self.owner, "Ticket", price=20.0)
        other = self.create_user()

        denied = self.client.put(
            f"/api/v2/products/{product_id}", json={"price": 1}, headers=self.auth_headers(other)
        )
        self.assertEqual(denied.status_code, 403)

        response = self.client.put(
            f"/api/v2/products/{product_id}", json={"price": 25}, headers=self.auth_headers(self.owner)
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["price"], 25.0)
        self.assertEqual(response.json()["data"]["name"], "Ticket")

    def test_delete_product(self):
        product_id = self.create_product(self.museum_id, self.owner, "Ticket")
        admin = self.create_user(role="admin")

        response = self.client.delete(f"/api/v2/products/{product_id}", headers=self.auth_headers(admin, "admin"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "data": []})
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Product).count(), 0)

        again = self.client.delete(f"/api/v2/products/{product_id}", headers=self.auth_headers(admin, "admin"))
        self.assertEqual(again.status_code, 404)


if __name__ == "__main__":
    unittest.main()
