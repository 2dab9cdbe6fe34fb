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


import copy
import datetime
import logging
import uuid

from .dirty_mixin import ChangeTrackingMixin

HOOK_PHASES = (
    "before_save",
    "before_create",
    "after_create",
    "before_update",
    "after_update",
    "after_save",
    "before_destroy",
    "after_destroy",
)


def now_ts():
    return datetime.datetime.now(datetime.timezone.utc).timestamp()


class Record(ChangeTrackingMixin):
    """Base class for everything kept in a record store.

    Fields are the union of ``__slots__`` along the class hierarchy, minus
    private names. Subclasses add fields by declaring their own ``__slots__``
    and initial values through ``defaults``::

        class Account(Record):
            __slots__ = ["name", "email"]
            defaults = {"name": ""}

    Lifecycle hooks are plain callables ``hook(record, store)`` registered per
    class with ``register_hook``; subclasses inherit the hooks of their parent
    at definition time. The store runs them around every write.
    """

    __slots__ = ["id", "type", "created_at", "updated_at", "_persisted"]

    primary_key = "id"
    inheritance_column = "type"
    defaults = {}

    _hooks = {phase: [] for phase in HOOK_PHASES}
    _tracked_attributes = frozenset()
    _record_types = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._hooks = {phase: list(hooks) for phase, hooks in cls._hooks.items()}
        name = cls.record_type()
        if name in Record._record_types and Record._record_types[name] is not cls:
            logging.debug("Record type %s redefined.", name)
        Record._record_types[name] = cls

    def __init__(self, from_dict=None, **kwargs):
        for k in self.field_names():
            object.__setattr__(self, k, None)
        object.__setattr__(self, "_persisted", False)
        object.__setattr__(self, "id", str(uuid.uuid4()))
        object.__setattr__(self, "type", self.record_type())

        for k, v in self.defaults.items():
            self.__setattr__(k, copy.deepcopy(v))

        if from_dict:
            self.deserialize(from_dict)

        for k, v in kwargs.items():
            self.__setattr__(k, v)

    @classmethod
    def record_type(cls):
        """Name stored in the type column; ``type_name`` overrides the class name"""
        return cls.__dict__.get("type_name") or cls.__name__

    @classmethod
    def type_names(cls):
        """Record type names that are this class or one of its registered subclasses"""
        return [name for name, klass in Record._record_types.items() if issubclass(klass, cls)] or [
            cls.record_type()
        ]

    @classmethod
    def lookup_type(cls, name):
        return Record._record_types.get(name)

    @classmethod
    def field_names(cls):
        names = []
        for klass in reversed(cls.__mro__):
            slots = klass.__dict__.get("__slots__", ())
            if isinstance(slots, str):
                slots = [slots]
            for name in slots:
                if not name.startswith("_") and name not in names:
                    names.append(name)
        return names

    @classmethod
    def has_field(cls, name):
        return name in cls.field_names()

    @classmethod
    def is_tracked(cls, key):
        return key in cls._tracked_attributes

    @classmethod
    def register_hook(cls, phase, hook):
        """Add ``hook`` to ``phase`` for this class and for subclasses defined afterwards.

        Subclasses copy the hook table when they are defined, so a hook registered
        on a parent later on does not reach its existing subclasses.
        """
        if phase not in HOOK_PHASES:
            raise ValueError("Unknown lifecycle phase {}".format(phase))
        if hook not in cls._hooks[phase]:
            cls._hooks[phase].append(hook)

    @classmethod
    def hooks(cls, phase):
        return list(cls._hooks[phase])

    def run_hooks(self, phase, store):
        for hook in type(self)._hooks[phase]:
            hook(self, store)

    @property
    def persisted(self):
        return self._persisted

    def mark_persisted(self, persisted=True):
        object.__setattr__(self, "_persisted", persisted)

    @classmethod
    def load(cls, data):
        """Build a record from stored data, picking the subclass named by its type column"""
        record_class = cls.lookup_type(data.get(cls.inheritance_column))
        if record_class is None or not issubclass(record_class, cls):
            record_class = cls
        record = record_class(from_dict=data)
        record.clear_changes()
        record.mark_persisted()
        return record

    @classmethod
    def serialize_slot(cls, key, value):
        return value

    @classmethod
    def deserialize_slot(cls, key, value):
        return value

    def serialize(self):
        """Serialize the record to a dictionary with plain data types"""
        result = {}
        for k in self.field_names():
            result[k] = self.serialize_slot(k, getattr(self, k))
        return result

    def deserialize(self, data):
        """Modify the record by deserializing a dictionary into it, ignoring unknown keys"""
        fields = self.field_names()
        for k, v in data.items():
            if k in fields:
                self.__setattr__(k, self.deserialize_slot(k, v))

    def __eq__(self, other):
        if isinstance(other, Record):
            return other.type == self.type and other.id == self.id
        return False

    def __hash__(self):
        return hash((self.type, self.id))

    def __repr__(self):
        return "{}(id={!r})".format(type(self).__name__, self.id)
