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


"""
Automatic change auditing for records.

Subclass ``AuditedRecord`` instead of ``Record`` and every create, update and
destroy going through a record store writes an ``Audit`` to the store's audit
store::

    class Account(AuditedRecord, exclude=["password"]):
        __slots__ = ["name", "email", "password"]

Class keyword arguments:

* ``exclude`` - one field name or a list of them, added to the columns that
  are never audited (primary key, type column, ``lock_version``,
  ``created_at``, ``updated_at``).
* ``user_class_name`` - dotted import path of the class that knows the
  current user. Defaults to ``auditing.user_class_name`` from the
  configuration, then to ``audited_store.common.user.User``. ``False``
  disables user tracking.
* ``user_method`` - name of the zero-argument method on that class returning
  the current user. Defaults to ``current_user``.
* ``actor`` - a zero-argument callable returning the current user (or its
  id), used instead of ``user_class_name``/``user_method``.

Suspending auditing is local to the current thread or asyncio task.
"""

import contextlib
import contextvars
import functools
import importlib
import logging

from . import config as audited_config
from .audit import Action, Audit
from .exceptions import InvalidConfig
from .logging import with_baggage_items
from .record import Record

DEFAULT_NON_AUDITED_COLUMNS = ("lock_version", "created_at", "updated_at")
DEFAULT_USER_CLASS_NAME = "audited_store.common.user.User"
DEFAULT_USER_METHOD = "current_user"

_suspended = contextvars.ContextVar("audited_store_suspended", default=frozenset())


def is_suspended(record_class):
    suspended = _suspended.get()
    return any(klass in suspended for klass in record_class.__mro__)


@contextlib.contextmanager
def suspend_auditing(record_class):
    """Skip audit writes for ``record_class`` and its subclasses inside the block"""
    token = _suspended.set(_suspended.get() | {record_class})
    logging.debug("Auditing suspended for %s.", record_class.__name__)
    try:
        yield
    finally:
        _suspended.reset(token)
        logging.debug("Auditing restored for %s.", record_class.__name__)


@functools.lru_cache(maxsize=None)
def resolve_user_method(user_class_name, user_method):
    """Find the accessor returning the current user; failures are not cached"""
    module_name, _, class_name = str(user_class_name).rpartition(".")
    if not module_name:
        raise InvalidConfig("User class name {} must be a dotted import path".format(user_class_name))
    try:
        user_class = getattr(importlib.import_module(module_name), class_name)
    except (ImportError, AttributeError) as e:
        raise InvalidConfig("Could not resolve user class {}".format(user_class_name)) from e

    accessor = getattr(user_class, user_method, None)
    if not callable(accessor):
        raise InvalidConfig("User class {} has no method {}".format(user_class_name, user_method))
    return accessor


def current_actor_id(record_class):
    """The id of the user responsible for the current change, or None"""
    options = record_class._audit_options
    accessor = options.get("actor")
    if accessor is None:
        auditing_config = audited_config.global_config.get("auditing") or {}

        user_class_name = options.get("user_class_name")
        if user_class_name is None:
            user_class_name = auditing_config.get("user_class_name", DEFAULT_USER_CLASS_NAME)
        if not user_class_name:
            return None

        user_method = options.get("user_method") or auditing_config.get("user_method") or DEFAULT_USER_METHOD
        accessor = resolve_user_method(user_class_name, user_method)

    actor = accessor()
    if actor is None:
        return None
    return getattr(actor, "id", actor)


def write_audit(record, store, action):
    if is_suspended(type(record)):
        return None

    audit = Audit(
        auditable_type=record.record_type(),
        auditable_id=record.id,
        changes=record.changes,
        action=action,
        user_id=current_actor_id(type(record)),
    )
    with with_baggage_items({"auditable_type": audit.auditable_type, "auditable_id": str(audit.auditable_id)}):
        store.audit_store.add_audit(audit)
        logging.debug("Audit %s written for %s.", audit.id, action.value)
    return audit


def audit_create(record, store):
    write_audit(record, store, Action.CREATE)


def audit_update(record, store):
    if record.changed():
        write_audit(record, store, Action.UPDATE)


def audit_destroy(record, store):
    write_audit(record, store, Action.DESTROY)


def nullify_audits(record, store):
    store.audit_store.nullify(record.record_type(), record.id)


def clear_changed_attributes(record, store):
    record.clear_changes()


class AuditedRecord(Record):
    """A record whose changes are written to the audit store. See the module docstring."""

    __slots__ = []

    _non_audited_columns = frozenset()
    _audit_options = {}

    def __init_subclass__(cls, exclude=None, user_class_name=None, user_method=None, actor=None, **kwargs):
        super().__init_subclass__(**kwargs)

        non_audited = set(cls._non_audited_columns)
        non_audited.update((cls.primary_key, cls.inheritance_column) + DEFAULT_NON_AUDITED_COLUMNS)
        if exclude:
            if isinstance(exclude, str):
                exclude = [exclude]
            non_audited.update(str(column) for column in exclude)
        cls._non_audited_columns = frozenset(non_audited)
        cls._tracked_attributes = frozenset(name for name in cls.field_names() if name not in non_audited)

        options = dict(cls._audit_options)
        if user_class_name is not None:
            options["user_class_name"] = user_class_name
        if user_method is not None:
            options["user_method"] = user_method
        if actor is not None:
            if not callable(actor):
                raise InvalidConfig("actor must be a zero-argument callable")
            options["actor"] = actor
        cls._audit_options = options

        # Nullifying comes first so the destroy audit keeps its link
        cls.register_hook("after_create", audit_create)
        cls.register_hook("after_update", audit_update)
        cls.register_hook("before_destroy", nullify_audits)
        cls.register_hook("before_destroy", audit_destroy)
        cls.register_hook("after_save", clear_changed_attributes)

    @classmethod
    def audited_attributes(cls):
        return [name for name in cls.field_names() if name in cls._tracked_attributes]

    @classmethod
    def non_audited_columns(cls):
        return sorted(cls._non_audited_columns)

    @classmethod
    def without_auditing(cls, work):
        """Call ``work()`` with auditing turned off for this class and return its result.

            Account.without_auditing(lambda: store.save(account))
        """
        with suspend_auditing(cls):
            return work()

    @classmethod
    def auditing_suspended(cls):
        """Context manager form of ``without_auditing``"""
        return suspend_auditing(cls)

    @classmethod
    def is_auditing_suspended(cls):
        return is_suspended(cls)

    def save_without_auditing(self, store):
        return self.without_auditing(lambda: store.save(self))

    def audits(self, store):
        return store.audits_for(self)
