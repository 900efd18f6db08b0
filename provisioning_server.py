import uuid
from datetime import datetime
from typing import Optional

from aiohttp import web
from loguru import logger


class ProvisioningServer:
    """Local stand-in for the IaaS API: accepts mutations and reports request status"""

    def __init__(
        self,
        completion_time: float = 10.0,
        queued_time: float = 1.0,
        not_found_polls: int = 0,
        fail_message: Optional[str] = None,
    ):
        self.completion_time = completion_time
        self.queued_time = queued_time
        self.not_found_polls = not_found_polls
        self.fail_message = fail_message
        self.requests: dict[str, dict] = {}
        self.app = web.Application()
        self.app.router.add_route("*", "/datacenters{tail:.*}", self.handle_mutation)
        self.app.router.add_get("/requests/{request_id}/status", self.handle_status)
        self.logger = logger
        self.runner: Optional[web.AppRunner] = None

    async def handle_mutation(self, request):
        request_id = str(uuid.uuid4())
        body = await request.json() if request.can_read_body else None
        self.requests[request_id] = {
            "submitted_at": datetime.now(),
            "polls": 0,
            "method": request.method,
            "path": request.path,
            "body": body,
        }
        self.logger.info(f"Accepted {request.method} {request.path} as {request_id}")
        return web.json_response(
            {"id": request_id},
            status=202,
            headers={"Location": f"/requests/{request_id}/status"},
        )

    async def handle_status(self, request):
        request_id = request.match_info["request_id"]
        tracked = self.requests.get(request_id)
        if tracked is None:
            raise web.HTTPNotFound()

        tracked["polls"] += 1
        if tracked["polls"] <= self.not_found_polls:
            self.logger.info(f"Request {request_id} not visible yet")
            raise web.HTTPNotFound()

        elapsed = (datetime.now() - tracked["submitted_at"]).total_seconds()
        message = None

        if elapsed < self.queued_time:
            status = "QUEUED"
        elif elapsed < self.completion_time:
            status = "RUNNING"
        elif self.fail_message is not None:
            status = "FAILED"
            message = self.fail_message
        else:
            status = "DONE"

        self.logger.info(f"Request {request_id} is {status} (elapsed: {elapsed:.1f}s)")
        return web.json_response(
            {
                "id": request_id,
                "metadata": {"status": status, "message": message},
                "targets": [{"method": tracked["method"], "path": tracked["path"]}],
            }
        )

    async def start(self, port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
