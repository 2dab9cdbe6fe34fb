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


import threading

import pytest

from audited_store.common.user import User


class Test:

    def test_user_equality(self):
        user1 = User("joebloggs", "realm1")
        user1.attributes["extra_info"] = "realm1_specific_id"

        user2 = User("joebloggs", "realm1")
        user2.attributes["extra_info"] = "something_else"

        user3 = User("joebloggs", "realm2")

        assert user1 == user2
        assert user1.id == user2.id
        assert user1 != user3
        assert user1.id != user3.id

    def test_user_immutable(self):
        user = User("joebloggs", "realm1")
        with pytest.raises(AttributeError):
            user.username = "other"
        with pytest.raises(AttributeError):
            user.id = "other"

    def test_user_requires_username_and_realm(self):
        with pytest.raises(AttributeError):
            User("joebloggs")

    def test_user_from_dict(self):
        user = User("joebloggs", "realm1")
        assert User(from_dict=user.serialize()) == user

    def test_current_user(self):
        alice = User("alice", "staff")
        bob = User("bob", "staff")
        assert User.current_user() is None
        with User.acting_as(alice):
            assert User.current_user() == alice
            with User.acting_as(bob):
                assert User.current_user() == bob
            assert User.current_user() == alice
        assert User.current_user() is None

    def test_current_user_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with User.acting_as(User("alice", "staff")):
                raise RuntimeError("boom")
        assert User.current_user() is None

    def test_current_user_not_shared_between_threads(self):
        seen = []
        with User.acting_as(User("alice", "staff")):
            thread = threading.Thread(target=lambda: seen.append(User.current_user()))
            thread.start()
            thread.join()
        assert seen == [None]

    def test_acting_as_requires_user(self):
        with pytest.raises(TypeError):
            with User.acting_as("alice"):
                pass
