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
import typing

import pymongo

DEFAULT_URI = "mongodb://localhost:27017"
DEFAULT_DATABASE = "audited_store"


def create_client(
    uri: str,
    username: typing.Optional[str] = None,
    password: typing.Optional[str] = None,
) -> pymongo.MongoClient:
    if username and password:
        return pymongo.MongoClient(host=uri, journal=True, connect=False, username=username, password=password)
    else:
        return pymongo.MongoClient(host=uri, journal=True, connect=False)


def connection_settings(config: dict) -> dict:
    """The subset of a store config needed to reach the same database from another store"""
    return {k: config[k] for k in ("uri", "database", "username", "password", "log_level") if k in config}


def open_database(config: dict):
    uri = config.get("uri", DEFAULT_URI)
    logging.getLogger("pymongo").setLevel(config.get("log_level", logging.WARNING))
    client = create_client(uri, config.get("username"), config.get("password"))
    database = client[config.get("database", DEFAULT_DATABASE)]
    logging.debug("MongoClient configured to open %s at %s", database.name, uri)
    return database
