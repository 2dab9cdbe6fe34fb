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
import operator
from functools import reduce

import boto3
from boto3.dynamodb.conditions import Attr, Key

from .. import dynamodb_utils
from ..audit import Audit
from . import audit_store

logger = logging.getLogger(__name__)

# auditable_id is dropped from the item when nullified, which keeps the index sparse
SPARSE_KEYS = ("auditable_id",)


def _create_table(dynamodb, table_name):
    try:
        kwargs = {
            "AttributeDefinitions": [
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "auditable_id", "AttributeType": "S"},
            ],
            "TableName": table_name,
            "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "auditable-index",
                    "KeySchema": [{"AttributeName": "auditable_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        }
        table = dynamodb.create_table(**kwargs)
        table.wait_until_exists()
    except dynamodb.meta.client.exceptions.ResourceInUseException:
        pass


def _load(document):
    return Audit(from_dict=document)


class DynamoDBAuditStore(audit_store.AuditStore):

    def __init__(self, config=None):
        if config is None:
            config = {}

        endpoint_url = config.get("endpoint_url")
        region = config.get("region")
        table_name = config.get("table_name", "audits")

        dynamodb = boto3.resource("dynamodb", region_name=region, endpoint_url=endpoint_url)
        self.table = dynamodb_utils.ensure_table(dynamodb, table_name, _create_table)

        logger.info("DynamoDB audit store configured for table name %s.", table_name)

    def get_type(self):
        return "dynamodb"

    def add_audit(self, audit):
        self.table.put_item(
            Item=dynamodb_utils.dump(audit.serialize(), sparse_keys=SPARSE_KEYS),
            ConditionExpression=Attr("id").not_exists(),
        )
        logger.debug("Audit %s added for %s %s.", audit.id, audit.auditable_type, audit.auditable_id)

    def get_audit(self, id):
        response = self.table.get_item(Key={"id": id})
        if "Item" in response:
            return _load(dynamodb_utils.load(response["Item"]))
        return None

    def get_audits(self, ascending=None, descending=None, limit=None, **kwargs):
        query = audit_store.check_query(ascending, descending, **kwargs)

        unlinked = "auditable_id" in query and query["auditable_id"] is None
        auditable_id = query.pop("auditable_id", None)
        if auditable_id is not None:
            fn = self.table.query
            params = {
                "IndexName": "auditable-index",
                "KeyConditionExpression": Key("auditable_id").eq(auditable_id),
            }
        else:
            fn = self.table.scan
            params = {}

        conditions = [Attr(key).eq(dynamodb_utils.convert_numbers(value)) for key, value in query.items()]
        if unlinked:
            conditions.append(Attr("auditable_id").not_exists())
        if conditions:
            params["FilterExpression"] = reduce(operator.__and__, conditions)

        documents = [dynamodb_utils.load(item) for item in dynamodb_utils.iter_items(fn, **params)]
        documents = dynamodb_utils.sort_documents(documents, ascending, descending)
        if limit is not None:
            documents = documents[:limit]
        return [_load(document) for document in documents]

    def nullify(self, auditable_type, auditable_id):
        items = dynamodb_utils.iter_items(
            self.table.query,
            IndexName="auditable-index",
            KeyConditionExpression=Key("auditable_id").eq(auditable_id),
            FilterExpression=Attr("auditable_type").eq(auditable_type),
        )
        ids = [item["id"] for item in items]
        for id in ids:
            self.table.update_item(Key={"id": id}, UpdateExpression="REMOVE auditable_id")
        if ids:
            logger.info("Unlinked %d audits of %s %s.", len(ids), auditable_type, auditable_id)
        return len(ids)

    def wipe(self):
        deleted = dynamodb_utils.delete_all(self.table)
        logger.info("Wiped %d audits from DynamoDB audit store.", deleted)
