"""Panel web server: REST API, remote callback webhook and live websocket."""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import BackgroundTasks, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..core.commands import CommandError, PermissionDenied
from ..core.context import BridgeContext

logger = logging.getLogger(__name__)

# HTTP paths exempt from session auth (the webhook carries its own secret)
_EXEMPT_PATHS = {"/health", "/api/auth/login", "/webhook/roblox"}

MAX_LOG_LIMIT = 500
DEFAULT_LOG_LIMIT = 100
HISTORY_LIMIT = 100


def _bearer(header: Optional[str]) -> str:
    if header and header.startswith("Bearer "):
        return header[7:].strip()
    return ""


def _parse_limit(raw: Optional[str]) -> int:
    try:
        limit = int(raw) if raw else DEFAULT_LOG_LIMIT
    except ValueError:
        limit = DEFAULT_LOG_LIMIT
    if limit <= 0:
        limit = DEFAULT_LOG_LIMIT
    return min(limit, MAX_LOG_LIMIT)


def log_type_filter(log_type: Optional[str]) -> Optional[Callable[[Any], bool]]:
    """Predicate matching log entries whose ``type`` field equals ``log_type``."""
    if not log_type:
        return None
    return lambda entry: isinstance(entry, dict) and entry.get("type") == log_type


class PanelServer:
    """HTTP/websocket front end over a BridgeContext."""

    def __init__(self, ctx: BridgeContext, host: str = "0.0.0.0", port: int = 3000):
        self.ctx = ctx
        self.host = host
        self.port = port
        self.app = self.build_app()

    def build_app(self) -> FastAPI:
        ctx = self.ctx
        app = FastAPI(title="Panel Bridge")

        # ── Auth middleware (HTTP routes only; /ws checks its token itself) ──
        @app.middleware("http")
        async def auth_middleware(request: Request, call_next):
            path = request.url.path
            if path in _EXEMPT_PATHS or not path.startswith("/api/"):
                return await call_next(request)

            account = ctx.sessions.resolve(_bearer(request.headers.get("Authorization")))
            if account is None:
                return JSONResponse({"error": "Unauthorized"}, status_code=401)
            request.state.account = account
            return await call_next(request)

        # ── Health ────────────────────────────────────────────────────
        @app.get("/health")
        async def health():
            return {
                "status": "healthy",
                "pending": len(ctx.registry),
                "observers": len(ctx.hub),
                "presenceUpdatedAt": ctx.presence.updated_at,
                "timestamp": datetime.now().isoformat(),
            }

        # ── Auth ──────────────────────────────────────────────────────
        @app.post("/api/auth/login")
        async def login(request: Request):
            try:
                body = await request.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                return JSONResponse({"error": "Missing fields"}, status_code=400)

            name = body.get("name") or body.get("robloxName")
            password = body.get("password")
            if not name or not password:
                return JSONResponse({"error": "Missing fields"}, status_code=400)

            account = ctx.accounts.authenticate(str(name), str(password))
            if account is None:
                logger.warning(
                    f"Failed login for {name!r} from "
                    f"{request.client.host if request.client else 'unknown'}"
                )
                return JSONResponse({"error": "Invalid credentials"}, status_code=401)

            token = ctx.sessions.create_session(account)
            logger.info(f"{account.name} logged in")
            return {"token": token, "user": {"name": account.name, "role": account.role.value}}

        @app.post("/api/auth/logout")
        async def logout(request: Request):
            ctx.sessions.revoke(_bearer(request.headers.get("Authorization")))
            logger.info(f"{request.state.account.name} logged out")
            return {"ok": True}

        @app.get("/api/auth/me")
        async def me(request: Request):
            return {"user": request.state.account.public()}

        # ── Read-only queries ─────────────────────────────────────────
        @app.get("/api/roblox/players")
        async def players():
            return ctx.presence.current()

        @app.get("/api/logs")
        async def get_logs(request: Request):
            limit = _parse_limit(request.query_params.get("limit"))
            predicate = log_type_filter(request.query_params.get("type"))
            return ctx.logs.recent(limit, predicate)

        @app.get("/api/logs/commands")
        async def get_command_history():
            return [entry.to_dict() for entry in ctx.history.recent(HISTORY_LIMIT)]

        # ── Commands ──────────────────────────────────────────────────
        @app.post("/api/roblox/{command}")
        async def run_command(command: str, request: Request):
            if ctx.commands.lookup(command) is None:
                return JSONResponse({"error": f"Unknown command '{command}'"}, status_code=404)
            try:
                body = await request.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                return JSONResponse({"error": "Body must be a JSON object"}, status_code=400)

            try:
                outcome = await ctx.commands.run(command, body, request.state.account)
            except PermissionDenied as e:
                return JSONResponse({"error": str(e)}, status_code=403)
            except CommandError as e:
                return JSONResponse({"error": str(e)}, status_code=400)
            return outcome.to_dict()

        # ── Remote callback webhook ───────────────────────────────────
        @app.post("/webhook/roblox")
        async def remote_callback(request: Request, background: BackgroundTasks):
            source = request.client.host if request.client else "unknown"
            try:
                payload = await request.json()
            except ValueError:
                return JSONResponse({"error": "Invalid JSON"}, status_code=400)
            if not isinstance(payload, dict):
                return JSONResponse({"error": "Body must be a JSON object"}, status_code=400)

            if not ctx.router.authorize(payload, source):
                return JSONResponse({"error": "Invalid secret"}, status_code=403)

            # Acknowledge first; routing runs after the response is sent
            background.add_task(ctx.router.route, payload)
            return {"ok": True}

        # ── Live observer websocket ───────────────────────────────────
        @app.websocket("/ws")
        async def observer_websocket(websocket: WebSocket):
            account = ctx.sessions.resolve(websocket.query_params.get("token"))
            await websocket.accept()
            if account is None:
                await websocket.close(code=1008, reason="Unauthorized")
                return

            await ctx.router.attach(websocket)
            try:
                while True:
                    # Observers are push-only; inbound frames are ignored
                    await websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug(f"Observer websocket for {account.name} disconnected")
            finally:
                ctx.router.detach(websocket)

        return app

    async def start(self):
        """Serve until cancelled, then drain pending calls."""
        import uvicorn

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="info",
        )
        server = uvicorn.Server(config)

        logger.info(f"Starting panel server on http://{self.host}:{self.port}")
        logger.info(f"Remote callback webhook: http://{self.host}:{self.port}/webhook/roblox")
        logger.info(f"Observer websocket: ws://{self.host}:{self.port}/ws?token=<session>")
        try:
            await server.serve()
        finally:
            await self.ctx.aclose()
