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


import datetime
import enum

import pytest

from audited_store.common import audit_store
from audited_store.common.audit import Action, Audit, encode_changes
from audited_store.common.audit_store.dynamodb_audit_store import DynamoDBAuditStore
from audited_store.common.audit_store.mongodb_audit_store import MongoAuditStore
from audited_store.common.exceptions import InvalidConfig


class Colour(enum.Enum):
    RED = "red"


class TestAudit:

    def test_defaults(self):
        audit = Audit(auditable_type="Account", auditable_id="abc")
        assert audit.action == Action.UPDATE
        assert audit.changes == "{}"
        assert audit.user_id is None
        assert audit.timestamp > 0

    def test_immutable(self):
        audit = Audit(auditable_type="Account", auditable_id="abc")
        with pytest.raises(AttributeError):
            audit.action = Action.DESTROY

    def test_unknown_field(self):
        with pytest.raises(AttributeError):
            Audit(colour="red")

    def test_changes_from_dict(self):
        audit = Audit(changes={"name": ("Alice", "Bob")}, action="create")
        assert audit.action == Action.CREATE
        assert audit.changes == '{"name": ["Alice", "Bob"]}'
        assert audit.changed_attributes() == {"name": ["Alice", "Bob"]}

    def test_encode_changes_non_json_values(self):
        when = datetime.datetime(2024, 1, 1, 12, 0)
        encoded = encode_changes({"colour": (None, Colour.RED), "due": (None, when), "tags": ((), {"a"})})
        assert encoded == '{"colour": [null, "red"], "due": [null, "2024-01-01 12:00:00"], "tags": [[], ["a"]]}'

    def test_serialize_round_trip(self):
        audit = Audit(auditable_type="Account", auditable_id="abc", action=Action.DESTROY, user_id="u1")
        data = audit.serialize()
        assert data["action"] == "destroy"
        copy = Audit(from_dict=data)
        assert copy == audit
        assert copy.action == Action.DESTROY
        assert copy.user_id == "u1"


def _test_add_and_query(store):
    a1 = Audit(auditable_type="Account", auditable_id="a", action=Action.CREATE, user_id="u1", timestamp=1.0)
    a2 = Audit(auditable_type="Account", auditable_id="a", action=Action.UPDATE, user_id="u2", timestamp=2.0)
    a3 = Audit(auditable_type="Invoice", auditable_id="b", action=Action.CREATE, timestamp=3.0)
    for a in (a1, a2, a3):
        store.add_audit(a)

    assert store.get_audit(a1.id) == a1
    assert store.get_audit(a1.id).changed_attributes() == {}
    assert store.get_audit("missing") is None

    assert store.get_audits(auditable_type="Account", auditable_id="a", ascending="timestamp") == [a1, a2]
    assert store.get_audits(auditable_type="Account", descending="timestamp") == [a2, a1]
    assert store.get_audits(action=Action.CREATE, ascending="timestamp") == [a1, a3]
    assert store.get_audits(user_id="u2") == [a2]
    assert store.get_audits(ascending="timestamp", limit=1) == [a1]

    with pytest.raises(KeyError):
        store.get_audits(colour="red")
    with pytest.raises(ValueError):
        store.get_audits(ascending="timestamp", descending="timestamp")


def _test_nullify(store):
    a1 = Audit(auditable_type="Account", auditable_id="a", timestamp=1.0)
    a2 = Audit(auditable_type="Account", auditable_id="a", timestamp=2.0)
    other = Audit(auditable_type="Invoice", auditable_id="a", timestamp=3.0)
    for a in (a1, a2, other):
        store.add_audit(a)

    assert store.nullify("Account", "a") == 2
    assert store.nullify("Account", "a") == 0
    assert store.get_audits(auditable_type="Account", auditable_id="a") == []
    assert store.get_audit(a1.id).auditable_id is None
    assert store.get_audits(auditable_type="Account", auditable_id=None, ascending="timestamp") == [a1, a2]
    assert store.get_audits(auditable_id="a") == [other]


def test_create_audit_store_unknown_type():
    with pytest.raises(InvalidConfig):
        audit_store.create_audit_store({"postgres": {}})


class TestMongoAuditStore:

    @pytest.fixture(autouse=True)
    def store(self, mongomock_client):
        self.store = MongoAuditStore({"collection": "audits", "ensure_indexes": True})

    def test_get_type(self):
        assert self.store.get_type() == "mongodb"
        assert "ix_auditable_timestamp" in self.store.store.index_information()

    def test_add_and_query(self):
        _test_add_and_query(self.store)

    def test_nullify(self):
        _test_nullify(self.store)

    def test_wipe(self):
        self.store.add_audit(Audit(auditable_type="Account", auditable_id="a"))
        self.store.wipe()
        assert self.store.get_audits() == []


class TestDynamoDBAuditStore:

    @pytest.fixture(autouse=True)
    def store(self, mocked_aws):
        self.store = DynamoDBAuditStore()

    def test_get_type(self):
        assert self.store.get_type() == "dynamodb"

    def test_add_and_query(self):
        _test_add_and_query(self.store)

    def test_nullify(self):
        _test_nullify(self.store)

    def test_wipe(self):
        self.store.add_audit(Audit(auditable_type="Account", auditable_id="a"))
        self.store.wipe()
        assert self.store.get_audits() == []
