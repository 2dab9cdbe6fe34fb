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
import botocore.exceptions
from boto3.dynamodb.conditions import Attr, Key

from .. import dynamodb_utils
from ..exceptions import NotFound, StaleRecord
from . import record_store

logger = logging.getLogger(__name__)


def _create_table(dynamodb, table_name):
    try:
        kwargs = {
            "AttributeDefinitions": [
                {"AttributeName": "id", "AttributeType": "S"},
                {"AttributeName": "type", "AttributeType": "S"},
            ],
            "TableName": table_name,
            "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "type-index",
                    "KeySchema": [{"AttributeName": "type", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        }
        table = dynamodb.create_table(**kwargs)
        table.wait_until_exists()
    except dynamodb.meta.client.exceptions.ResourceInUseException:
        pass


class DynamoDBRecordStore(record_store.RecordStore):

    def __init__(self, config=None, audit_store_config=None):
        if config is None:
            config = {}

        endpoint_url = config.get("endpoint_url")
        region = config.get("region")
        table_name = config.get("table_name", "records")

        dynamodb = boto3.resource("dynamodb", region_name=region, endpoint_url=endpoint_url)
        self.table = dynamodb_utils.ensure_table(dynamodb, table_name, _create_table)

        if audit_store_config is None:
            audit_store_config = {"dynamodb": {"region": region, "endpoint_url": endpoint_url}}
        super().__init__(audit_store_config)

        logger.info("DynamoDB record store configured for table name %s.", table_name)

    def get_type(self):
        return "dynamodb"

    def _insert(self, document):
        try:
            self.table.put_item(Item=dynamodb_utils.dump(document), ConditionExpression=Attr("id").not_exists())
        except botocore.exceptions.ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ValueError("Record already exists in record store") from e
            raise

    def _update(self, document, expected_version):
        condition = Attr("id").eq(document["id"])
        if expected_version is not None:
            condition = condition & Attr("lock_version").eq(expected_version)
        try:
            self.table.put_item(Item=dynamodb_utils.dump(document), ConditionExpression=condition)
        except botocore.exceptions.ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                if "Item" not in self.table.get_item(Key={"id": document["id"]}):
                    raise NotFound("Record {} not found in record store".format(document["id"])) from e
                raise StaleRecord("Record {} was modified by someone else".format(document["id"])) from e
            raise

    def _delete(self, id):
        try:
            self.table.delete_item(Key={"id": id}, ConditionExpression=Attr("id").exists())
        except botocore.exceptions.ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise NotFound("Record {} not found in record store".format(id)) from e
            raise

    def _find(self, id, type_names):
        response = self.table.get_item(Key={"id": id})
        if "Item" not in response:
            return None
        document = dynamodb_utils.load(response["Item"])
        if document.get("type") not in type_names:
            return None
        return document

    def _query(self, type_names, query, ascending, descending, limit):
        documents = []
        for type_name in type_names:
            params = {
                "IndexName": "type-index",
                "KeyConditionExpression": Key("type").eq(type_name),
            }
            if query:
                params["FilterExpression"] = reduce(
                    operator.__and__,
                    (Attr(key).eq(dynamodb_utils.convert_numbers(value)) for key, value in query.items()),
                )
            items = dynamodb_utils.iter_items(self.table.query, **params)
            documents.extend(dynamodb_utils.load(item) for item in items)

        documents = dynamodb_utils.sort_documents(documents, ascending, descending)
        if limit is not None:
            documents = documents[:limit]
        return documents

    def wipe(self):
        deleted = dynamodb_utils.delete_all(self.table)
        logger.info("Wiped %d records from DynamoDB record store.", deleted)
