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
from decimal import Decimal

logger = logging.getLogger(__name__)


def iter_items(fn, **params):
    while True:
        response = fn(**params)
        for item in response["Items"]:
            yield item
        if "LastEvaluatedKey" not in response:
            break
        params["ExclusiveStartKey"] = response["LastEvaluatedKey"]


def _visit(obj, fn):
    if isinstance(obj, dict):
        return {key: _visit(value, fn) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_visit(value, fn) for value in obj]
    return fn(obj)


def convert_numbers(obj, reverse=False):
    """DynamoDB only takes Decimal numbers; integral values come back as int"""

    def fn(item):
        if not reverse and isinstance(item, float):
            return Decimal(str(item))
        elif reverse and isinstance(item, Decimal):
            return int(item) if item == item.to_integral_value() else float(item)
        return item

    return _visit(obj, fn)


def dump(document, sparse_keys=()):
    """Convert a document to an item; ``sparse_keys`` are left out when None since index keys cannot be null"""
    item = convert_numbers(document)
    for key in sparse_keys:
        if item.get(key) is None:
            item.pop(key, None)
    return item


def load(item):
    return {key: convert_numbers(value, reverse=True) for key, value in item.items()}


def sort_documents(documents, ascending=None, descending=None):
    # None sorts first
    if ascending:
        return sorted(documents, key=lambda d: (d.get(ascending) is not None, d.get(ascending)))
    if descending:
        return sorted(documents, key=lambda d: (d.get(descending) is not None, d.get(descending)), reverse=True)
    return list(documents)


def ensure_table(dynamodb, table_name, create_table):
    client = dynamodb.meta.client
    try:
        response = client.describe_table(TableName=table_name)
        if response["Table"]["TableStatus"] != "ACTIVE":
            raise RuntimeError(f"DynamoDB table {table_name} is not active.")
    except client.exceptions.ResourceNotFoundException:
        create_table(dynamodb, table_name)
    return dynamodb.Table(table_name)


def delete_all(table):
    keys = [item["id"] for item in iter_items(table.scan, ProjectionExpression="id")]
    with table.batch_writer() as batch:
        for id in keys:
            batch.delete_item(Key={"id": id})
    logger.debug("Deleted %d items from %s.", len(keys), table.name)
    return len(keys)
