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
import contextvars
import logging
import uuid

_current_user = contextvars.ContextVar("audited_store_current_user", default=None)


class User:
    """The default actor recorded on audit entries.

    ``User.current_user()`` is the accessor auditing calls unless configured
    otherwise; it returns whoever was set with ``User.acting_as`` in the
    current thread or asyncio task.
    """

    __slots__ = ["id", "username", "realm", "attributes"]

    def __init__(self, username=None, realm=None, from_dict=None):

        self.username = username
        self.realm = realm
        self.attributes = {}
        self.id = None
        if from_dict is not None:
            for k, v in from_dict.items():
                self.__setattr__(k, v)

        if self.username is None or self.realm is None:
            raise AttributeError("User object must be instantiated with username and realm attributes")

        self.create_uuid()

    def __setattr__(self, attr, value):
        if attr == "username" and getattr(self, "username", None) is not None:
            raise AttributeError("User username is immutable")
        if attr == "realm" and getattr(self, "realm", None) is not None:
            raise AttributeError("User realm is immutable")
        if attr == "id" and getattr(self, "id", None) is not None:
            raise AttributeError("User ID is immutable")

        super().__setattr__(attr, value)

    def __eq__(self, other):
        return isinstance(other, User) and self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def create_uuid(self):
        if getattr(self, "id", None) is not None:
            return
        null_uuid = uuid.UUID(int=0)
        unique_string = "{}{}{}{}".format(self.username, len(self.username), self.realm, len(self.realm))
        id = str(uuid.uuid5(null_uuid, unique_string))
        super().__setattr__("id", id)

    def serialize(self):
        result = {}
        for k in self.__slots__:
            result[k] = self.__getattribute__(k)
        return result

    def __str__(self):
        return f"User({self.realm}:{self.username})"

    @classmethod
    def current_user(cls):
        return _current_user.get()

    @classmethod
    @contextlib.contextmanager
    def acting_as(cls, user):
        """Make ``user`` the current user for the duration of the block"""
        if user is not None and not isinstance(user, cls):
            raise TypeError("Expected a {} but got {!r}".format(cls.__name__, user))
        token = _current_user.set(user)
        logging.debug("Acting as %s.", user)
        try:
            yield user
        finally:
            _current_user.reset(token)
