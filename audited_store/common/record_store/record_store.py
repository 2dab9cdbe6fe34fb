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


import contextlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from .. import audit_store
from ..audit import Audit
from ..auditing import suspend_auditing
from ..exceptions import NotFound, StaleRecord
from ..record import Record, now_ts


class RecordStore(ABC):
    """RecordStore is an interface for database-based storage for Record objects.

    The public operations run the record's lifecycle hooks in this order:

    * create: before_save, before_create, <insert>, after_create, after_save
    * update: before_save, before_update, <write>, after_update, after_save
    * destroy: before_destroy, <delete>, after_destroy

    Backends only implement the raw document operations. Every write takes
    ``audit=False`` to skip audit entries for that single call.
    """

    def __init__(self, audit_store_config=None):
        """Initialize a record store together with the audit store it writes audits to"""
        self.audit_store = audit_store.create_audit_store(audit_store_config)

    def add_record(self, record: Record, audit: bool = True) -> None:
        """Add a new record to the record store"""
        with self._auditing(record, audit):
            record.run_hooks("before_save", self)
            record.run_hooks("before_create", self)

            now = now_ts()
            record.created_at = now
            record.updated_at = now
            if record.has_field("lock_version"):
                record.lock_version = 0

            self._insert(record.serialize())
            record.mark_persisted()

            try:
                record.run_hooks("after_create", self)
                record.run_hooks("after_save", self)
            finally:
                record.clear_changes()

        logging.info("Record %s %s added.", record.record_type(), record.id)

    def update_record(self, record: Record, audit: bool = True) -> None:
        """Write the current state of a stored record"""
        with self._auditing(record, audit):
            record.run_hooks("before_save", self)
            record.run_hooks("before_update", self)

            record.updated_at = now_ts()
            expected_version = None
            if record.has_field("lock_version"):
                expected_version = record.lock_version or 0
                record.lock_version = expected_version + 1

            try:
                self._update(record.serialize(), expected_version)
            except (NotFound, StaleRecord):
                if expected_version is not None:
                    object.__setattr__(record, "lock_version", expected_version)
                raise

            try:
                record.run_hooks("after_update", self)
                record.run_hooks("after_save", self)
            finally:
                record.clear_changes()

        logging.info("Record %s %s updated.", record.record_type(), record.id)

    def save(self, record: Record, audit: bool = True) -> None:
        """Add the record if it was never stored, otherwise update it"""
        if record.persisted:
            self.update_record(record, audit=audit)
        else:
            self.add_record(record, audit=audit)

    def remove_record(self, record: Record, audit: bool = True) -> None:
        """Remove a record from the record store"""
        if self._find(record.id, [record.record_type()]) is None:
            raise NotFound("Record {} not found in record store".format(record.id))

        with self._auditing(record, audit):
            record.run_hooks("before_destroy", self)
            self._delete(record.id)
            record.mark_persisted(False)
            record.run_hooks("after_destroy", self)

        logging.info("Record %s %s removed.", record.record_type(), record.id)

    def get_record(self, record_class: Type[Record], id: str) -> Optional[Record]:
        """Fetch a record of ``record_class`` (or one of its subclasses) by id"""
        document = self._find(id, record_class.type_names())
        if document is None:
            return None
        return record_class.load(document)

    def get_records(
        self, record_class: Type[Record], ascending=None, descending=None, limit=None, **kwargs
    ) -> List[Record]:
        """Returns [limit] records which match kwargs, ordered by
        ascending/descending keys (e.g. ascending = 'created_at')"""
        if ascending is not None and descending is not None:
            raise ValueError("Cannot sort by ascending and descending at the same time.")

        fields = record_class.field_names()
        for key in [k for k in (ascending, descending) if k is not None] + list(kwargs):
            if key not in fields:
                raise KeyError("Record {} has no key {}".format(record_class.__name__, key))

        query = {k: record_class.serialize_slot(k, v) for k, v in kwargs.items()}
        documents = self._query(record_class.type_names(), query, ascending, descending, limit)
        return [record_class.load(document) for document in documents]

    def audits_for(self, record: Record) -> List[Audit]:
        """Audits linked to a record, oldest first"""
        return self.audit_store.get_audits(
            auditable_type=record.record_type(), auditable_id=record.id, ascending="timestamp"
        )

    def _auditing(self, record, audit):
        if audit:
            return contextlib.nullcontext()
        return suspend_auditing(type(record))

    @abstractmethod
    def get_type(self) -> str:
        """Returns the type of the record_store in use"""

    @abstractmethod
    def wipe(self) -> None:
        """Wipe the record store. Audits are kept."""

    @abstractmethod
    def _insert(self, document: Dict[str, Any]) -> None:
        """Insert a new document, raising ValueError if its id is taken"""

    @abstractmethod
    def _update(self, document: Dict[str, Any], expected_version: Optional[int]) -> None:
        """Replace a stored document.

        Raises NotFound if there is none with this id, and StaleRecord if
        ``expected_version`` is given and the stored lock_version differs.
        """

    @abstractmethod
    def _delete(self, id: str) -> None:
        """Delete a stored document"""

    @abstractmethod
    def _find(self, id: str, type_names: List[str]) -> Optional[Dict[str, Any]]:
        """Fetch one document by id if its type is one of type_names"""

    @abstractmethod
    def _query(
        self,
        type_names: List[str],
        query: Dict[str, Any],
        ascending: Optional[str],
        descending: Optional[str],
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        """Documents of the given types whose fields equal the query values"""
