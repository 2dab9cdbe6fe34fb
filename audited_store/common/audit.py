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


import enum
import json
import uuid

from .record import now_ts


class Action(enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


def _json_default(value):
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def encode_changes(changes):
    """Serialize a change map of name -> (old, new) into the text stored on an audit"""
    return json.dumps(
        {name: [old, new] for name, (old, new) in changes.items()},
        default=_json_default,
        sort_keys=True,
    )


class Audit:
    """A single logged change of an audited record. Immutable once created."""

    __slots__ = ["id", "auditable_type", "auditable_id", "changes", "action", "user_id", "timestamp"]

    def __init__(self, from_dict=None, **kwargs):
        values = {
            "id": str(uuid.uuid4()),
            "auditable_type": None,
            "auditable_id": None,
            "changes": "{}",
            "action": Action.UPDATE,
            "user_id": None,
            "timestamp": now_ts(),
        }
        if from_dict:
            values.update({k: self.deserialize_slot(k, v) for k, v in from_dict.items() if k in self.__slots__})
        for k, v in kwargs.items():
            if k not in self.__slots__:
                raise AttributeError("Audit has no attribute {}".format(k))
            values[k] = self.deserialize_slot(k, v)

        for k in self.__slots__:
            object.__setattr__(self, k, values[k])

    def __setattr__(self, attr, value):
        raise AttributeError("Audit entries are immutable")

    @classmethod
    def serialize_slot(cls, key, value):
        if value is None:
            return None
        if key == "action":
            return value.value
        return value

    @classmethod
    def deserialize_slot(cls, key, value):
        if value is None:
            return None
        if key == "action":
            return Action(value)
        if key == "changes" and isinstance(value, dict):
            return encode_changes(value)
        return value

    def serialize(self):
        result = {}
        for k in self.__slots__:
            result[k] = self.serialize_slot(k, getattr(self, k))
        return result

    def changed_attributes(self):
        """The stored changes decoded back into ``{name: [old, new]}``"""
        return json.loads(self.changes)

    def __eq__(self, other):
        if isinstance(other, Audit):
            return other.id == self.id
        return False

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return "Audit({} {} {}:{})".format(self.id, self.action.value, self.auditable_type, self.auditable_id)
