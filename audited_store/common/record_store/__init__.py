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


from .. import config as audited_config
from ..exceptions import InvalidConfig
from . import dynamodb_record_store, mongodb_record_store, record_store

type_to_class_map: dict[str, type[record_store.RecordStore]] = {
    "mongodb": mongodb_record_store.MongoRecordStore,
    "dynamodb": dynamodb_record_store.DynamoDBRecordStore,
}


def create_record_store(record_store_config=None, audit_store_config=None) -> record_store.RecordStore:

    if record_store_config is None:
        record_store_config = {"mongodb": {}}

    db_type = next(iter(record_store_config.keys()))

    if db_type not in type_to_class_map:
        raise InvalidConfig("Unknown record store type {}".format(db_type))

    return type_to_class_map[db_type](record_store_config.get(db_type), audit_store_config)


def from_config(config=None) -> record_store.RecordStore:
    """Create the record store described by the record_store and audit_store config sections"""
    if config is None:
        config = audited_config.global_config
    return create_record_store(config.get("record_store"), config.get("audit_store"))
