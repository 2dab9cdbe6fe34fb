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


from abc import ABC, abstractmethod
from typing import List, Optional

from ..audit import Audit


class AuditStore(ABC):
    """AuditStore is an interface for the collection audit entries are written to.

    Entries are never modified or deleted through it, apart from ``nullify``
    unlinking them from a destroyed record.
    """

    def __init__(self):
        """Initialize an audit store"""

    @abstractmethod
    def add_audit(self, audit: Audit) -> None:
        """Add an audit entry to the audit store"""

    @abstractmethod
    def get_audit(self, id: str) -> Optional[Audit]:
        """Fetch an audit entry by id"""

    @abstractmethod
    def get_audits(self, ascending=None, descending=None, limit=None, **kwargs) -> List[Audit]:
        """Returns [limit] audits which match kwargs, ordered by
        ascending/descending keys (e.g. ascending = 'timestamp')"""

    @abstractmethod
    def nullify(self, auditable_type: str, auditable_id: str) -> int:
        """Unlink the audits of a record by setting their auditable_id to None.

        Returns:
            int: Number of audits unlinked.
        """

    @abstractmethod
    def get_type(self) -> str:
        """Returns the type of the audit_store in use"""

    @abstractmethod
    def wipe(self) -> None:
        """Wipe the audit store"""


def check_query(ascending=None, descending=None, **kwargs):
    """Validate get_audits arguments and return the query with serialized values"""
    if ascending is not None and descending is not None:
        raise ValueError("Cannot sort by ascending and descending at the same time.")

    for key in [k for k in (ascending, descending) if k is not None] + list(kwargs):
        if key not in Audit.__slots__:
            raise KeyError("Audit has no key {}".format(key))

    return {k: Audit.serialize_slot(k, v) for k, v in kwargs.items()}
