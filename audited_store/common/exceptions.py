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



class InvalidConfig(Exception):
    pass


class AuditedStoreException(Exception):
    """Baseclass for errors raised by record and audit stores."""

    description = None

    def __init__(self, description=None):
        super(AuditedStoreException, self).__init__(description)
        if description is not None:
            self.description = description

    def __repr__(self):
        return f"{self.__class__.__name__}: {self.description}"


class NotFound(AuditedStoreException):
    pass


class Conflict(AuditedStoreException):
    pass


class StaleRecord(Conflict):
    """Raised when a record was modified by someone else since it was loaded"""
