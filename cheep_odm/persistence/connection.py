"""
Lazily creates the single MongoDB client shared by the whole process. The client is never closed; connection pooling,
timeouts and reconnects are all left to ``pymongo``.
"""
import os
import threading
import typing as t

from loguru import logger
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.uri_parser import parse_uri

from cheep_odm.errors import ConfigurationError


MONGODB_URI_ENV = "MONGODB_URI"
SRV_LOOKUP_TIMEOUT = 20.0  # seconds, the same as pymongo's own default connect timeout

_client: t.Optional[MongoClient] = None
_client_lock = threading.Lock()


def get_client(mongo_uri: str) -> MongoClient:
    """
    Returns the process-wide client, creating it from ``mongo_uri`` if it doesn't exist yet. Once created, the same
    client is returned for every call, whatever URI is passed.
    """
    global _client
    if _client is None:
        with _client_lock:
            # Another thread may have created the client while we waited for the lock.
            if _client is None:
                logger.info("creating the shared MongoDB client")
                _client = MongoClient(mongo_uri)
    return _client


def get_database(mongo_uri: t.Optional[str] = None) -> Database:
    """
    Returns a handle on the database named in ``mongo_uri``, on the shared client.

    For ``mongodb+srv://`` URIs, reading the database name resolves the SRV and TXT DNS records, and the client then
    resolves them again when it is first created. The first lookup gives up after :data:`SRV_LOOKUP_TIMEOUT` seconds.

    Parameters
    ----------
    mongo_uri : str, optional
        A MongoDB connection string, which must include a database name, e.g.
        ``mongodb://localhost:27017/my_database``. Defaults to the value of the ``MONGODB_URI`` environment variable.
    """
    if mongo_uri is None:
        mongo_uri = os.getenv(MONGODB_URI_ENV)
        if mongo_uri is None:
            raise ConfigurationError(f"No MongoDB URI was given, and {MONGODB_URI_ENV} is not set.")
    # Helpful error, rather than failing later on an unnamed database.
    database_name = parse_uri(mongo_uri, connect_timeout=SRV_LOOKUP_TIMEOUT)["database"]
    if database_name is None or not database_name.strip():
        raise ConfigurationError(f"No database is specified in the MongoDB URI: {mongo_uri}", uri=mongo_uri)
    return get_client(mongo_uri)[database_name]
