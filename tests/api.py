"""
restrules unit tests for the whole API in certain client actions
"""

import datetime
import unittest as _unittest
from typing import Type

from jose import jwt

from restrules import err, schemas as _schemas
from restrules.outcomes import FailureKind

from . import utils


api_suite = _unittest.TestSuite()


def _tested(cls: Type):
    global api_suite
    for fixture in filter(lambda f: f.startswith("test_"), dir(cls)):
        api_suite.addTest(cls(fixture))
    return cls


class _BrokenStore:
    def __getattr__(self, item):
        def fail(*args, **kwargs):
            raise RuntimeError("Storage unavailable")
        return fail


@_tested
class APITests(utils.BaseAPITests):
    def test_basic_endpoints_and_redirects_to_docs(self):
        for _ in range(16):
            self.assertEqual({}, self.assertQuery(("GET", "/health"), 200).json())
        self.assertQuery(
            ("GET", "/health"),
            r_headers={"X-API-Version": "2.0.0", "Cache-Control": "private, max-age=60"}
        )
        self.assertQuery(("GET", "/health"), r_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining"])

        self.assertIn("docs", self.assertQuery(
            ("GET", "/"),
            [302, 303, 307],
            follow_redirects=False,
            r_is_json=False,
            no_version=True
        ).headers.get("Location"))
        self.assertQuery(("GET", "/docs"), r_is_json=False, no_version=True)
        self.assertQuery(("GET", "/docs"), r_is_json=False)
        self.assertQuery(("GET", "/openapi.json"), r_headers={"Content-Type": "application/json"})
        self.assertQuery(("GET", "/openapi.json"), r_headers={"Content-Type": "application/json"}, no_version=True)

        self.assertQuery(("GET", "/unknown-things"), 404, r_code="404_NOT_FOUND")
        self.assertQuery(("GET", "/unknown-things"), 404, r_code="404_NOT_FOUND", no_version=True)
        self.assertQuery(("POST", "/health"), 405, r_code="405_METHOD_NOT_ALLOWED", r_headers=["Allow"])
        self.assertQuery(("DELETE", "/users"), 405, r_code="405_METHOD_NOT_ALLOWED")

    def test_openapi_documents_error_payload(self):
        schema = self.assertQuery(("GET", "/openapi.json"), 200).json()
        self.assertIn("ErrorPayload", schema["components"]["schemas"])
        for path, operations in schema["paths"].items():
            for method, metadata in operations.items():
                self.assertNotIn("422", metadata["responses"], (path, method))

    def test_registered_routes_follow_naming_rules(self):
        patterns = [rule.pattern for rule in self.app.registry]
        for pattern in [
            "/health",
            "/login",
            "/naming-reports",
            "/orders",
            "/orders/{order_id}",
            "/users",
            "/users/{user_id}",
            "/users/{user_id}/orders",
            "/versions"
        ]:
            self.assertIn(pattern, patterns)
        for report in self.app.registry.reports():
            self.assertTrue(report.valid, report)
        self.assertTrue(self.app.registry.frozen)
        self.assertSetEqual({"GET", "PUT", "DELETE"}, set(self.app.registry.allowed_methods("/users/1")))
        with self.assertRaises(err.ConfigurationError):
            self.app.registry.register("/users/{user_id}/payments", ["GET"])

    def test_naming_reports(self):
        report = self.assertQuery(
            ("GET", "/naming-reports"),
            params={"path": "/getUsers"},
            r_schema=_schemas.NamingReport
        ).json()
        self.assertFalse(report["valid"])
        self.assertEqual("/getUsers", report["path"])
        self.assertIn("verb-in-path", [v["rule"] for v in report["violations"]])

        report = self.assertQuery(("GET", "/naming-reports"), params={"path": "/users"}).json()
        self.assertTrue(report["valid"])
        self.assertEqual([], report["violations"])

        report = self.assertQuery(("GET", "/naming-reports", 1), params={"path": "/users/{user_id}/orders"}).json()
        self.assertTrue(report["valid"])

        self.assertQuery(("GET", "/naming-reports"), 400, r_code="400_INVALID_INPUT")

    def test_login_and_authorization(self):
        self.assertQuery(
            ("GET", "/users"), 401,
            r_code="401_UNAUTHORIZED",
            r_headers={"WWW-Authenticate": "Bearer", "Cache-Control": "no-store"}
        )

        name, password = self.clients["admin"]
        response = self.client.post("/v2/login", data={"username": name, "password": password + "!"})
        self.assertEqual(401, response.status_code)
        self.assertError(response, "401_UNAUTHORIZED")
        response = self.client.post("/v2/login", data={"username": "unknown", "password": password})
        self.assertError(response, "401_UNAUTHORIZED")
        response = self.client.post("/v2/login", data={"username": name})
        self.assertError(response, "400_INVALID_INPUT")

        response = self.client.post("/v1/login", data={"username": name, "password": password})
        self.assertEqual(200, response.status_code)
        self.assertTrue(_schemas.Token(**response.json()))
        claims = jwt.get_unverified_claims(response.json()["access_token"])
        self.assertEqual(name, claims["sub"])
        self.assertEqual("admin", claims["role"])

        self.login("reader")
        self.assertQuery(("GET", "/users"), 200)
        self.assertQuery(
            ("POST", "/users"), 403,
            json={"name": "dave", "email": "dave@example.com"},
            r_code="403_FORBIDDEN"
        )
        self.assertQuery(("DELETE", "/users/1"), 403, r_code="403_FORBIDDEN")

        self.assertQuery(("GET", "/users"), 401, headers={"Authorization": "Bearer foo"}, r_code="401_UNAUTHORIZED")
        now = datetime.datetime.now(datetime.timezone.utc)
        forged = jwt.encode(
            {"sub": name, "role": "admin", "iat": now, "exp": now + datetime.timedelta(minutes=5)},
            "another-secret-key-of-the-attacker",
            algorithm="HS256"
        )
        self.assertQuery(("GET", "/users"), 401, headers={"Authorization": f"Bearer {forged}"})
        expired = jwt.encode(
            {"sub": name, "role": "admin", "iat": now, "exp": now - datetime.timedelta(minutes=5)},
            self.settings.auth.secret_key,
            algorithm="HS256"
        )
        self.assertQuery(("GET", "/users"), 401, headers={"Authorization": f"Bearer {expired}"})

    def test_user_representations_per_version(self):
        self.login("reader")
        user_v1 = self.assertQuery(("GET", "/users/1", 1), r_headers={"X-API-Version": "1.0.0"}).json()
        self.assertNotIn("display_name", user_v1)
        self.assertEqual("alice", user_v1["name"])
        self.assertEqual({"self": "/v1/users/1", "orders": "/v1/users/1/orders"}, user_v1["_links"])

        user_v2 = self.assertQuery(("GET", "/users/1", 2), r_headers={"X-API-Version": "2.0.0"}).json()
        self.assertEqual("Alice", user_v2["display_name"])
        self.assertEqual({"self": "/v2/users/1", "orders": "/v2/users/1/orders"}, user_v2["_links"])
        self.assertTrue(_schemas.User(**user_v2))

        self.assertQuery(("GET", "/users/99"), 404, r_code="404_NOT_FOUND")
        self.assertQuery(("GET", "/users/abc"), 400, r_code="400_INVALID_INPUT")
        self.assertQuery(("GET", "/users/-1"), 400, r_code="400_INVALID_INPUT")

    def test_collection_shaping(self):
        self.login("reader")
        page = self.assertQuery(("GET", "/users"), r_schema=_schemas.Page).json()
        self.assertEqual(3, page["total"])
        self.assertEqual(1, page["page"])
        self.assertEqual(1, page["pages"])
        self.assertEqual(20, page["limit"])
        self.assertEqual([1, 2, 3], [u["id"] for u in page["items"]])
        self.assertEqual("/v2/users?limit=20&page=1", page["_links"]["self"])
        self.assertEqual("/v2/users?limit=20&page=1", page["_links"]["last"])
        self.assertNotIn("next", page["_links"])
        self.assertEqual("/v2/users/2", page["items"][1]["_links"]["self"])

        self.assertEqual(100, self.assertQuery(("GET", "/users?limit=1000")).json()["limit"])
        page = self.assertQuery(("GET", "/users?active=false")).json()
        self.assertEqual(["carol"], [u["name"] for u in page["items"]])
        page = self.assertQuery(("GET", "/users?sort=-name")).json()
        self.assertEqual(["carol", "bob", "alice"], [u["name"] for u in page["items"]])
        page = self.assertQuery(("GET", "/users?sort=-name&active=true&limit=1&page=2")).json()
        self.assertEqual(["alice"], [u["name"] for u in page["items"]])
        self.assertEqual(2, page["pages"])
        self.assertEqual("/v2/users?active=true&sort=-name&limit=1&page=1", page["_links"]["prev"])
        self.assertEqual([], self.assertQuery(("GET", "/users?page=5")).json()["items"])

        self.assertQuery(("GET", "/users?page=0"), 400, r_code="400_INVALID_INPUT")
        self.assertQuery(("GET", "/users?limit=abc"), 400, r_code="400_INVALID_INPUT")
        self.assertQuery(("GET", "/users?unknown=1"), 400, r_code="400_INVALID_INPUT")
        self.assertQuery(("GET", "/users?sort=password"), 400, r_code="400_INVALID_INPUT")
        self.assertQuery(("GET", "/users?display_name=Alice", 1), 400, r_code="400_INVALID_INPUT")
        page = self.assertQuery(("GET", "/users?display_name=Alice", 2)).json()
        self.assertEqual([1], [u["id"] for u in page["items"]])

    def test_orders(self):
        self.login("reader")
        page = self.assertQuery(("GET", "/orders"), r_schema=_schemas.Page).json()
        self.assertEqual(4, page["total"])
        self.assertEqual(2, self.assertQuery(("GET", "/orders?status=pending")).json()["total"])
        self.assertEqual(
            [12, 5, 2, 1],
            [o["quantity"] for o in self.assertQuery(("GET", "/orders?sort=-quantity")).json()["items"]]
        )

        order = self.assertQuery(("GET", "/orders/1")).json()
        self.assertEqual({"self": "/v2/orders/1", "user": "/v2/users/1"}, order["_links"])
        self.assertQuery(("GET", "/orders/99"), 404, r_code="404_NOT_FOUND")
        self.assertQuery(("GET", "/orders/abc"), 400, r_code="400_INVALID_INPUT")

        page = self.assertQuery(("GET", "/users/1/orders", 1)).json()
        self.assertEqual(2, page["total"])
        self.assertEqual("/v1/users/1/orders?limit=20&page=1", page["_links"]["self"])
        self.assertEqual(
            [{"self": "/v1/orders/1", "user": "/v1/users/1"}, {"self": "/v1/orders/2", "user": "/v1/users/1"}],
            [o["_links"] for o in page["items"]]
        )
        self.assertQuery(("GET", "/users/99/orders"), 404, r_code="404_NOT_FOUND")

    def test_user_modifications(self):
        self.login("admin")
        user = self.assertQuery(
            ("POST", "/users"), 201,
            json={"name": "dave", "email": "dave@example.com", "display_name": "Dave"},
            r_headers={"Location": "/v2/users/4", "Cache-Control": "no-store"},
            r_schema=_schemas.User
        ).json()
        self.assertEqual(4, user["id"])
        self.assertTrue(user["active"])
        self.assertEqual("/v2/users/4", user["_links"]["self"])

        self.assertQuery(
            ("POST", "/users"), 409,
            json={"name": "DAVE", "email": "dave@example.com"},
            r_code="409_CONFLICT"
        )
        self.assertQuery(("POST", "/users"), 400, json={"name": "eve", "email": "no-email"}, r_code="400_INVALID_INPUT")
        self.assertQuery(("POST", "/users"), 400, json={"email": "eve@example.com"}, r_code="400_INVALID_INPUT")
        self.assertQuery(
            ("POST", "/users"), 400,
            content="{no json",
            headers={"Content-Type": "application/json"},
            r_code="400_INVALID_INPUT"
        )

        user = self.assertQuery(
            ("PUT", "/users/4"), 200,
            json={"name": "david", "email": "david@example.com", "active": False}
        ).json()
        self.assertEqual("david", user["name"])
        self.assertFalse(user["active"])
        self.assertIsNone(user["display_name"])
        self.assertQuery(
            ("PUT", "/users/4"), 409,
            json={"name": "alice", "email": "david@example.com"},
            r_code="409_CONFLICT"
        )
        self.assertQuery(
            ("PUT", "/users/99"), 404,
            json={"name": "nobody", "email": "nobody@example.com"},
            r_code="404_NOT_FOUND"
        )

        self.assertQuery(("DELETE", "/users/4"), 204, r_none=True, r_headers={"Cache-Control": "no-store"})
        self.assertQuery(("GET", "/users/4"), 404, r_code="404_NOT_FOUND")
        self.assertQuery(("DELETE", "/users/4"), 404, r_code="404_NOT_FOUND")

        self.assertEqual(4, self.assertQuery(("GET", "/orders")).json()["total"])
        self.assertQuery(("DELETE", "/users/1", 1), 204, r_none=True)
        self.assertEqual(2, self.assertQuery(("GET", "/orders")).json()["total"])
        self.assertEqual(2, self.assertQuery(("GET", "/users")).json()["total"])

    def test_entity_tags(self):
        self.login("admin")
        response = self.assertQuery(("GET", "/users/1"))
        etag = response.headers.get("ETag")
        self.assertIsNotNone(etag)
        self.assertTrue(etag.startswith('"') and etag.endswith('"'))
        self.assertEqual(etag, self.assertQuery(("GET", "/users/1")).headers.get("ETag"))
        self.assertNotEqual(etag, self.assertQuery(("GET", "/users/1", 1)).headers.get("ETag"))

        self.assertQuery(("GET", "/users/1"), 304, headers={"If-None-Match": etag}, r_none=True)
        self.assertQuery(("GET", "/users/1"), 304, headers={"If-None-Match": f'"abc", W/{etag}'}, r_none=True)
        self.assertQuery(("GET", "/users/1"), 200, headers={"If-None-Match": '"abc"'})

        page_etag = self.assertQuery(("GET", "/users")).headers.get("ETag")
        self.assertQuery(("GET", "/users"), 304, headers={"If-None-Match": page_etag}, r_none=True)
        self.assertQuery(("GET", "/users?limit=2"), 200, headers={"If-None-Match": page_etag})

        orders_etag = self.assertQuery(("GET", "/users/1/orders", 1)).headers.get("ETag")
        self.assertIsNotNone(orders_etag)
        self.assertQuery(("GET", "/users/1/orders", 1), 304, headers={"If-None-Match": orders_etag}, r_none=True)
        self.assertQuery(("GET", "/users/1/orders?sort=-quantity", 1), 200, headers={"If-None-Match": orders_etag})
        self.assertNotEqual(orders_etag, self.assertQuery(("GET", "/users/2/orders", 1)).headers.get("ETag"))

        body = {"name": "alice", "email": "alice@example.org", "display_name": "Alice"}
        self.assertQuery(
            ("PUT", "/users/1"), 412,
            json=body,
            headers={"If-Match": '"outdated"'},
            r_code="412_PRECONDITION_FAILED"
        )
        response = self.assertQuery(("PUT", "/users/1"), 200, json=body, headers={"If-Match": etag})
        self.assertEqual("alice@example.org", response.json()["email"])
        new_etag = response.headers.get("ETag")
        self.assertNotEqual(etag, new_etag)
        self.assertEqual(new_etag, self.assertQuery(("GET", "/users/1")).headers.get("ETag"))

        self.assertQuery(("DELETE", "/users/1"), 412, headers={"If-Match": etag}, r_code="412_PRECONDITION_FAILED")
        self.assertQuery(("DELETE", "/users/1"), 204, headers={"If-Match": new_etag}, r_none=True)

    def test_server_failures(self):
        self.login("reader")
        self.app.version_router.select(2).state.store = _BrokenStore()
        response = self.assertQuery(("GET", "/users"), 500, r_code="500_SERVER_FAILURE")
        self.assertNotIn("Storage unavailable", response.text)
        self.assertQuery(("GET", "/users", 1), 200)

    def test_every_failure_kind_maps_to_an_error(self):
        mapper = self.app.state.status_mapper
        for kind in FailureKind:
            code, payload = mapper.map_exception(type("Failure", (err.OutcomeError,), {"kind": kind})("failed"))
            self.assertGreaterEqual(code, 400)
            self.assertTrue(payload.code)
            self.assertEqual("failed", payload.message)


@_tested
class VersioningAPITests(utils.BaseAPITests):
    def test_versions_endpoint(self):
        versions = self.assertQuery(("GET", "/versions"), no_version=True, r_schema=_schemas.Versions).json()
        self.assertEqual(2, versions["latest"])
        self.assertEqual(
            [
                {"version": 1, "prefix": "/v1", "full": "1.0.0"},
                {"version": 2, "prefix": "/v2", "full": "2.0.0"}
            ],
            versions["versions"]
        )
        self.assertEqual(2, self.latest_api_version)

    def test_unsupported_versions(self):
        self.login("reader")
        for version in [0, 3, 42]:
            response = self.assertQuery(("GET", "/users", version), 404, r_code="404_UNSUPPORTED_VERSION")
            self.assertIn("not supported", response.json()["message"])
        self.assertQuery(("GET", "/v3"), 404, r_code="404_UNSUPPORTED_VERSION", no_version=True)
        self.assertQuery(
            ("GET", "/users"), 404,
            headers={"Accept-Version": "3"},
            r_code="404_UNSUPPORTED_VERSION",
            no_version=True
        )
        self.assertQuery(
            ("GET", "/users"), 404,
            headers={"Accept": "application/vnd.restrules.v3+json"},
            r_code="404_UNSUPPORTED_VERSION",
            no_version=True
        )
        self.assertQuery(
            ("GET", "/users"), 400,
            headers={"Accept-Version": "newest"},
            r_code="400_INVALID_INPUT",
            no_version=True
        )

    def test_header_negotiation(self):
        self.login("reader")
        for headers, version in [
            ({"Accept-Version": "1"}, "1.0.0"),
            ({"Accept-Version": "1.5"}, "1.0.0"),
            ({"X-API-Version": "v2"}, "2.0.0"),
            ({"Accept": "application/vnd.restrules.v1+json"}, "1.0.0"),
            ({"Accept": "application/vnd.restrules.v2.3+json"}, "2.0.0")
        ]:
            response = self.assertQuery(
                ("GET", "/users/1"),
                headers=headers,
                r_headers={"X-API-Version": version},
                no_version=True
            )
            self.assertEqual(version == "2.0.0", "display_name" in response.json(), headers)
            self.assertEqual(f"/v{version[0]}/users/1", response.json()["_links"]["self"])

        self.assertQuery(("GET", "/users"), 404, r_code="404_NOT_FOUND", no_version=True)
        self.assertQuery(
            ("GET", "/users"), 404,
            headers={"Accept": "application/vnd.other.v2+json"},
            r_code="404_NOT_FOUND",
            no_version=True
        )
        self.assertQuery(
            ("GET", "/users"), 200,
            headers={"Accept-Version": "2", "Accept": "application/json"},
            no_version=True
        )

    def test_unversioned_paths(self):
        response = self.assertQuery(("GET", "/versions"), no_version=True, headers={"Accept-Version": "3"})
        self.assertIsNone(response.headers.get("X-API-Version"))
        self.assertQuery(("GET", "/openapi.json"), no_version=True, headers={"Accept-Version": "1"})


if __name__ == '__main__':
    _unittest.main()
