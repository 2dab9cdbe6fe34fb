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


import os
import tempfile
from unittest import mock

import mongomock
import pytest
import yaml
from moto import mock_aws

import audited_store.common.config as audited_config
import audited_store.common.logging as logging

tmp = tempfile.NamedTemporaryFile()
with open(tmp.name, "w") as tf:
    test_conf = {
        "developer": {"disable_schema_check": True},
        "version": "1",
        "logging": {"level": "DEBUG"},
        "record_store": {"mongodb": {"collection": "records"}},
        "auditing": {},
    }
    tf.write(yaml.dump(test_conf))
pytest.basic_config = [tmp.name]

c = audited_config.ConfigParser()
config = c.read(pytest.basic_config, args=[])
logging.setup(config, source_name="audited_store.tests.unit")


@pytest.fixture(scope="function")
def mongomock_client(monkeypatch):
    """Make every store built through mongo_client_factory share one in-memory mongomock client."""

    mock_client = mongomock.MongoClient()

    def fake_create_client(uri, username=None, password=None):
        return mock_client

    monkeypatch.setattr("audited_store.common.mongo_client_factory.create_client", fake_create_client)
    yield mock_client


@pytest.fixture(scope="function")
def mongomock_record_store(mongomock_client):
    from audited_store.common.record_store.mongodb_record_store import MongoRecordStore

    yield MongoRecordStore({"uri": "mongodb://ignored", "collection": "records"})


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    values = {
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
        "AWS_SECURITY_TOKEN": "testing",
        "AWS_SESSION_TOKEN": "testing",
        "AWS_DEFAULT_REGION": "us-east-1",
        "AWS_ENDPOINT_URL_DYNAMODB": "https://dynamodb.us-east-1.amazonaws.com",
    }
    with mock.patch.dict(os.environ, values):
        yield


@pytest.fixture(scope="function")
def mocked_aws(aws_credentials):
    with mock_aws():
        yield


@pytest.fixture(scope="function")
def dynamodb_store(mocked_aws):
    from audited_store.common.record_store.dynamodb_record_store import DynamoDBRecordStore

    yield DynamoDBRecordStore()
