"""
Gateway service for the Fibonacci pipeline.
"""

from typing import Dict, List, Optional

from fastapi import Body, HTTPException, Query, status

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.stores import HistoryStore, ResultCache

from .gateway import RequestGateway
from .models import HistoryItem, ResultResponse, SubmitRequest, SubmitResponse

SERVICE_NAME = "gateway"
DEFAULT_PORT = 8000


class GatewayService(BaseService):
    """HTTP surface over RequestGateway."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        history_store: Optional[HistoryStore] = None,
        result_cache: Optional[ResultCache] = None,
    ):
        super().__init__(SERVICE_NAME, DEFAULT_PORT, config or get_config(SERVICE_NAME, DEFAULT_PORT))

        self.history_store = history_store if history_store is not None else HistoryStore(self.config.postgres_dsn)
        self.result_cache = result_cache if result_cache is not None else ResultCache(
            self.config.redis_url,
            values_key=self.config.values_key,
            channel=self.config.notification_channel,
        )
        self.gateway = RequestGateway(
            self.history_store,
            self.result_cache,
            max_index=self.config.max_index,
            history_page_size=self.config.history_page_size,
            metrics=self.metrics,
        )

        self._setup_gateway_routes()
        self.app.state.gateway_service = self

    def _setup_gateway_routes(self):
        """Set up gateway-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Fibonacci pipeline - Gateway Service",
                "version": "1.0.0",
                "max_index": self.config.max_index,
            }

        @self.app.get("/values/all", response_model=List[HistoryItem])
        async def list_history(
            limit: Optional[int] = Query(None, ge=1, description="Maximum records to return"),
            offset: int = Query(0, ge=0, description="Records to skip"),
        ):
            """Every requested index, oldest first."""
            records = await self.gateway.list_history(limit=limit, offset=offset)
            return [record.to_public() for record in records]

        @self.app.get("/values/current", response_model=Dict[str, Optional[int]])
        async def list_results():
            """Index to value; null while the value is still pending."""
            entries = await self.gateway.list_results()
            return {str(index): entry.value for index, entry in sorted(entries.items())}

        @self.app.get("/values/{index}", response_model=ResultResponse)
        async def get_result(index: int):
            """State of a single index."""
            entry = await self.gateway.get_result(index)
            if entry is None:
                raise HTTPException(status_code=404, detail="Index has not been requested")
            return ResultResponse.from_entry(entry)

        @self.app.post("/values", response_model=SubmitResponse, status_code=status.HTTP_202_ACCEPTED)
        async def submit(request: SubmitRequest = Body(...)):
            """Schedule computation of the Fibonacci value for an index."""
            record = await self.gateway.submit(request.index)
            return SubmitResponse(working=True, index=record.index)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check gateway dependencies."""
        return {
            "redis": "ok" if await self.result_cache.health_check() else "error",
            "postgres": "ok" if await self.history_store.health_check() else "error",
        }

    async def start(self):
        """Connect to both stores."""
        await self.history_store.start()
        await self.result_cache.start()
        self.logger.info("Gateway service started", max_index=self.config.max_index)

    async def stop(self):
        """Disconnect from both stores."""
        await self.result_cache.stop()
        await self.history_store.stop()
        self.logger.info("Gateway service stopped")


def create_app(**kwargs):
    """Create gateway service application."""
    service = GatewayService(**kwargs)
    return service.app


if __name__ == "__main__":
    GatewayService().run()
