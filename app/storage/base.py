from typing import Protocol


class BackingStore(Protocol):
	async def connect(self) -> None: ...
	def close(self) -> None: ...
