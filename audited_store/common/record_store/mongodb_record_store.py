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


import logging

import pymongo

from .. import mongo_client_factory
from ..exceptions import NotFound, StaleRecord
from . import record_store


class MongoRecordStore(record_store.RecordStore):
    def __init__(self, config=None, audit_store_config=None):
        if config is None:
            config = {}
        collection = config.get("collection", "records")

        self.database = mongo_client_factory.open_database(config)
        self.store = self.database[collection]

        # Without its own config, audits go next to the records
        if audit_store_config is None:
            audit_store_config = {"mongodb": mongo_client_factory.connection_settings(config)}
        super().__init__(audit_store_config)

        logging.debug("Mongo record store configured for collection %s.", collection)

    def get_type(self):
        return "mongodb"

    def _insert(self, document):
        if self.store.find_one({"id": document["id"]}, {"_id": False}) is not None:
            raise ValueError("Record already exists in record store")
        self.store.insert_one(dict(document))

    def _update(self, document, expected_version):
        query = {"id": document["id"]}
        if expected_version is not None:
            query["lock_version"] = expected_version

        res = self.store.find_one_and_update(
            query,
            {"$set": document},
            return_document=pymongo.ReturnDocument.AFTER,
        )
        if res is None:
            if self.store.find_one({"id": document["id"]}, {"_id": False}) is None:
                raise NotFound("Record {} not found in record store".format(document["id"]))
            raise StaleRecord("Record {} was modified by someone else".format(document["id"]))

    def _delete(self, id):
        result = self.store.find_one_and_delete({"id": id})
        if result is None:
            raise NotFound("Record {} not found in record store".format(id))

    def _find(self, id, type_names):
        return self.store.find_one({"id": id, "type": {"$in": list(type_names)}}, {"_id": False})

    def _query(self, type_names, query, ascending, descending, limit):
        query = dict(query)
        query["type"] = {"$in": list(type_names)}
        cursor = self.store.find(query, {"_id": False})

        if ascending is not None:
            cursor.sort(ascending, pymongo.ASCENDING)
        elif descending is not None:
            cursor.sort(descending, pymongo.DESCENDING)
        if limit is not None:
            cursor.limit(limit)
        return list(cursor)

    def wipe(self):
        self.database.drop_collection(self.store.name)
