#
# Copyright 2022 European Centre for Medium-Range Weather Forecasts (ECMWF)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# In applying this licence, ECMWF does not waive the privileges and immunities
# granted to it by virtue of its status as an intergovernmental organisation nor
# does it submit to any jurisdiction.
#


import logging
import typing
from unittest import mock

import mongomock

from audited_store.common import mongo_client_factory


@mock.patch("audited_store.common.mongo_client_factory.pymongo.MongoClient", autospec=True)
def test_create_without_credentials(mock_mongo: mock.Mock):
    mongo_client_factory.create_client("mongodb://host:123")

    _verify(mock_mongo, "mongodb://host:123", None, None)


@mock.patch("audited_store.common.mongo_client_factory.pymongo.MongoClient", autospec=True)
def test_create_without_password_credentials(mock_mongo: mock.Mock):
    mongo_client_factory.create_client("mongodb+srv://host:123", username="admin")

    _verify(mock_mongo, "mongodb+srv://host:123", None, None)


@mock.patch("audited_store.common.mongo_client_factory.pymongo.MongoClient", autospec=True)
def test_create_with_credentials(mock_mongo: mock.Mock):
    mongo_client_factory.create_client("mongodb+srv://host", username="admin", password="est123123")

    _verify(mock_mongo, "mongodb+srv://host", "admin", "est123123")


def test_connection_settings_drops_store_specific_keys():
    config = {
        "uri": "mongodb://host:123",
        "database": "ledger",
        "collection": "accounts",
        "username": "admin",
        "password": "secret",
    }
    assert mongo_client_factory.connection_settings(config) == {
        "uri": "mongodb://host:123",
        "database": "ledger",
        "username": "admin",
        "password": "secret",
    }


def test_open_database(monkeypatch):
    client = mongomock.MongoClient()
    calls = []

    def fake_create_client(uri, username=None, password=None):
        calls.append((uri, username, password))
        return client

    monkeypatch.setattr(mongo_client_factory, "create_client", fake_create_client)

    database = mongo_client_factory.open_database({"uri": "mongodb://host:123", "database": "ledger"})
    assert database.name == "ledger"
    assert calls == [("mongodb://host:123", None, None)]
    assert logging.getLogger("pymongo").level == logging.WARNING

    database = mongo_client_factory.open_database({})
    assert database.name == mongo_client_factory.DEFAULT_DATABASE
    assert calls[-1] == (mongo_client_factory.DEFAULT_URI, None, None)


def _verify(
    mock_mongo: mock.Mock, endpoint: str, username: typing.Optional[str] = None, password: typing.Optional[str] = None
):
    mock_mongo.assert_called_once()
    args, kwargs = mock_mongo.call_args
    assert kwargs["host"] == endpoint
    if username:
        assert kwargs["username"] == username
    else:
        assert "username" not in kwargs
    if password:
        assert kwargs["password"] == password
    else:
        assert "password" not in kwargs
