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
from ..audit import Audit
from . import audit_store


class MongoAuditStore(audit_store.AuditStore):
    def __init__(self, config=None):
        if config is None:
            config = {}
        collection = config.get("collection", "audits")

        self.database = mongo_client_factory.open_database(config)
        self.store = self.database[collection]
        if config.get("ensure_indexes", False):
            self.ensure_indexes()

        logging.debug("Mongo audit store configured for collection %s.", collection)

    def get_type(self):
        return "mongodb"

    def add_audit(self, audit):
        self.store.insert_one(audit.serialize())
        logging.debug("Audit %s added for %s %s.", audit.id, audit.auditable_type, audit.auditable_id)

    def get_audit(self, id):
        result = self.store.find_one({"id": id}, {"_id": False})
        if result:
            return Audit(from_dict=result)
        return None

    def get_audits(self, ascending=None, descending=None, limit=None, **kwargs):
        query = audit_store.check_query(ascending, descending, **kwargs)
        cursor = self.store.find(query, {"_id": False})

        if ascending is not None:
            cursor.sort(ascending, pymongo.ASCENDING)
        elif descending is not None:
            cursor.sort(descending, pymongo.DESCENDING)
        if limit is not None:
            cursor.limit(limit)

        return [Audit(from_dict=i) for i in cursor]

    def nullify(self, auditable_type, auditable_id):
        result = self.store.update_many(
            {"auditable_type": auditable_type, "auditable_id": auditable_id},
            {"$set": {"auditable_id": None}},
        )
        if result.modified_count:
            logging.info("Unlinked %d audits of %s %s.", result.modified_count, auditable_type, auditable_id)
        return result.modified_count

    def wipe(self):
        self.database.drop_collection(self.store.name)

    def ensure_indexes(self):
        self.store.create_index([("id", pymongo.ASCENDING)], name="ix_id", unique=True)
        self.store.create_index(
            [
                ("auditable_type", pymongo.ASCENDING),
                ("auditable_id", pymongo.ASCENDING),
                ("timestamp", pymongo.ASCENDING),
            ],
            name="ix_auditable_timestamp",
        )
