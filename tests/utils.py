"""
Helper functions to make writing unit tests for restrules easier
"""

import os
import secrets
import unittest
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

import httpx
import pydantic
from fastapi.testclient import TestClient

from restrules import settings as _settings
from restrules.api import auth
from restrules.api.api import create_app
from restrules.schemas import config as _config

from . import conf


class BaseTest(unittest.TestCase):
    """
    A base class for unit tests which introduces simple setup and teardown of unit tests

    If a subclass needs special setup or teardown functionality, it **MUST**
    call the superclasses setup and teardown methods: the superclass setup
    method at the beginning of the subclass setup method, the superclass
    teardown method at the end of the subclass teardown method.
    """

    config_file: Optional[str] = None
    _original_config_paths: Optional[List[str]] = None

    def setUp(self) -> None:
        self.config_file = f"config_{os.getpid()}_{secrets.token_hex(8)}.json"
        self._original_config_paths = _settings.CONFIG_PATHS
        _settings.CONFIG_PATHS = [self.config_file]

    def tearDown(self) -> None:
        if self.config_file and os.path.exists(self.config_file):
            os.remove(self.config_file)
        _settings.CONFIG_PATHS = self._original_config_paths


class BaseAPITests(BaseTest):
    api_version_format: str = "/v{}"
    _latest_api_version: Optional[int] = None

    client: TestClient
    clients: Dict[str, Tuple[str, str]]
    token: Optional[str] = None

    def get_config(self) -> Dict[str, Any]:
        """
        Return the settings used to create the application of every unit test

        Overwrite this method in subclasses to test non-default settings.
        """

        self.clients = {
            "admin": (conf.ADMIN_CLIENT_NAME, secrets.token_urlsafe(16)),
            "reader": (conf.READER_CLIENT_NAME, secrets.token_urlsafe(16))
        }
        return {
            "auth": {
                "secret_key": secrets.token_hex(32),
                "allow_weak_insecure_password_hashes": True,
                "clients": [
                    {"name": name, "password_hash": auth.hash_password(password, weak=True), "role": role}
                    for role, (name, password) in self.clients.items()
                ]
            },
            "rate_limit": {"requests": conf.RATE_LIMIT_REQUESTS},
            "logging": conf.SERVER_LOGGING_OVERWRITE or _config.LoggingConfig().model_dump()
        }

    def setUp(self) -> None:
        super().setUp()
        self.settings = _settings.Settings(**self.get_config())
        self.app = create_app(self.settings, configure_logging=conf.SERVER_LOGGING_OVERWRITE is not None)
        self.client = TestClient(self.app, raise_server_exceptions=False)
        self.token = None
        self._latest_api_version = None

    def tearDown(self) -> None:
        self.client.close()
        super().tearDown()

    @property
    def latest_api_version(self) -> int:
        if not self._latest_api_version:
            response = self.client.get("/versions")
            self._latest_api_version = int(response.json()["latest"])
        return self._latest_api_version

    def assertQuery(
            self,
            endpoint: Union[Tuple[str, str], Tuple[str, str, int]],
            status_code: Union[int, Iterable[int]] = 200,
            json: Optional[Union[dict, pydantic.BaseModel]] = None,
            headers: Optional[dict] = None,
            r_none: bool = False,
            r_is_json: bool = True,
            r_headers: Optional[Union[Mapping, Iterable]] = None,
            r_schema: Optional[Union[pydantic.BaseModel, Type[pydantic.BaseModel]]] = None,
            r_code: Optional[str] = None,
            no_version: bool = False,
            **kwargs
    ) -> httpx.Response:
        """
        Do a query to the specified endpoint and return the response

        Besides also carrying the optional JSON data, headers and other keyword arguments,
        this function asserts that the response has the specified status code. Furthermore,
        the optional asserted response headers and asserted response schema can be used,
        where the headers are either an iterable to only assert certain keys or a mapping
        to also assert values, and the schema is either a schema class or an instance
        thereof (in the later case, the values will be compared to the response, too).

        :param endpoint: tuple of the method, the path of the endpoint and the
            optional API version (uses the latest version if omitted by default)
        :param status_code: asserted status code(s) of the final server's response
        :param json: optional dictionary or model holding the request data
        :param headers: optional set of headers to sent in the request
        :param r_none: switch to expect no (=empty) result and skip all other response content checks
        :param r_is_json: switch to check that the response contains JSON data
        :param r_headers optional set of headers which are asserted in the response
        :param r_schema: optional class or instance of a response schema to be asserted
        :param r_code: optional error code asserted in the error payload of the response
        :param no_version: don't add the latest version to the two-element endpoint definition
        :param kwargs: dict of any further keyword arguments, passed to ``TestClient.request``
        :return: response to the requested resource
        """

        if len(endpoint) == 3:
            method, path, api_version = endpoint
        else:
            method, path = endpoint
            api_version = self.latest_api_version

        if isinstance(json, pydantic.BaseModel):
            json = json.model_dump()

        prefix = "" if no_version else self.api_version_format.format(api_version)
        headers = headers or {}
        if self.token:
            headers.setdefault("Authorization", f"Bearer {self.token}")
        response = self.client.request(
            method.upper(),
            prefix + path,
            json=json,
            headers=headers,
            **kwargs
        )

        if isinstance(status_code, int):
            self.assertEqual(status_code, response.status_code, response.text)
        elif isinstance(status_code, Iterable):
            self.assertTrue(
                response.status_code in status_code,
                (response.text, response.status_code, status_code)
            )

        if r_headers is not None:
            for k in (r_headers if isinstance(r_headers, Iterable) else r_headers.keys()):
                self.assertIsNotNone(response.headers.get(k), response.headers)
                if isinstance(r_headers, Mapping):
                    self.assertEqual(r_headers[k], response.headers.get(k), response.headers)

        if r_none:
            self.assertEqual("", response.text)

        else:
            if r_is_json:
                try:
                    self.assertIsNotNone(response.json())
                except ValueError:
                    self.fail(("No JSON content detected", response.headers, response.text))

            if r_schema and isinstance(r_schema, pydantic.BaseModel):
                self.assertEqual(r_schema, type(r_schema)(**response.json()), response.json())
            elif r_schema and isinstance(r_schema, type) and issubclass(r_schema, pydantic.BaseModel):
                self.assertTrue(r_schema(**response.json()), response.json())

            if r_code is not None:
                self.assertError(response, r_code)

        return response

    def assertError(self, response: httpx.Response, code: str):
        """
        Assert that the response carries the error payload with the given code
        """

        self.assertGreaterEqual(response.status_code, 400, response.text)
        payload = response.json()
        self.assertEqual(code, payload.get("code"), payload)
        self.assertIsInstance(payload.get("message"), str, payload)
        self.assertTrue(payload["message"], payload)
        self.assertIn("details", payload)
        self.assertTrue(response.headers.get("Content-Type", "").startswith("application/json"))

    def login(self, role: str = "admin"):
        name, password = self.clients[role]
        response = self.client.post(
            self.api_version_format.format(self.latest_api_version) + "/login",
            data={"grant_type": "password", "username": name, "password": password}
        )
        if response.status_code == 200:
            self.token = response.json()["access_token"]
        else:
            self.fail(f"Failed to login ({response.status_code})")
