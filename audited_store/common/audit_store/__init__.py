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


from ..exceptions import InvalidConfig
from . import audit_store, dynamodb_audit_store, mongodb_audit_store

type_to_class_map: dict[str, type[audit_store.AuditStore]] = {
    "mongodb": mongodb_audit_store.MongoAuditStore,
    "dynamodb": dynamodb_audit_store.DynamoDBAuditStore,
}


def create_audit_store(audit_store_config=None) -> audit_store.AuditStore:

    if audit_store_config is None:
        audit_store_config = {"mongodb": {}}

    db_type = next(iter(audit_store_config.keys()))

    if db_type not in type_to_class_map:
        raise InvalidConfig("Unknown audit store type {}".format(db_type))

    return type_to_class_map[db_type](audit_store_config.get(db_type))
