import asyncio
import logging
from typing import Any

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..errors import StoreConnectionError
from .base import BackingStore

_LOGGER = logging.getLogger(__name__)


class MongoConnection(BackingStore):
	"""
	Owns the MongoDB client for the lifetime of the process.

	connect() only returns once the server has answered a ping, so callers can
	rely on the store being reachable before they start serving traffic.
	"""

	def __init__(self, mongo_url: str, database: str, timeout_ms: int = 10000) -> None:
		self._mongo_url = mongo_url
		self._database = database
		self._timeout_ms = timeout_ms
		self.client: MongoClient | None = None

	@property
	def db(self) -> Any:
		if self.client is None:
			raise StoreConnectionError("MongoDB connection is not established")
		return self.client[self._database]

	def _open(self) -> MongoClient:
		client: MongoClient = MongoClient(self._mongo_url, serverSelectionTimeoutMS=self._timeout_ms)
		try:
			client.admin.command("ping")
		except PyMongoError:
			client.close()
			raise
		return client

	async def connect(self) -> None:
		if self.client is not None:
			return
		try:
			self.client = await asyncio.to_thread(self._open)
		except PyMongoError as e:
			raise StoreConnectionError(f"MongoDB connection failed: {e}") from e
		_LOGGER.info("MongoDB connected", extra={"db": self._database})

	def close(self) -> None:
		if self.client is None:
			return
		self.client.close()
		self.client = None
		_LOGGER.info("MongoDB connection closed")
