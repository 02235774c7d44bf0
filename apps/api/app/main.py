from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import structlog
import uvicorn
from dotenv import load_dotenv
from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from somnia_agent.errors import ActionError
from somnia_agent.runtime.config import load_runtime_config
from somnia_agent.runtime.logging_setup import configure_logging
from somnia_agent.services import ActionServices, build_services
from somnia_agent.tools.registry import ActionRegistry, ActionResult

from app.workflows import (
    WorkflowCompileRequest,
    WorkflowCompileResponse,
    WorkflowExpandRequest,
    WorkflowExpandResponse,
    WorkflowRunRequest,
    WorkflowRunResponse,
    compile_workflow_payload,
    expand_chain_payload,
    run_workflow_payload,
)

_MAIN_FILE = Path(__file__).resolve()
_API_DIR = _MAIN_FILE.parents[1]
_REPO_ROOT = _MAIN_FILE.parents[3]

# Load non-committed local env first, then standard .env files.
for _dotenv_path in (
    _REPO_ROOT / ".local.env",
    _API_DIR / ".local.env",
    _REPO_ROOT / ".env",
    _API_DIR / ".env",
):
    if _dotenv_path.exists():
        load_dotenv(dotenv_path=_dotenv_path, override=False)

logger = structlog.get_logger(__name__)

ActionBody = Optional[Dict[str, Any]]


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    network: str
    rpc: Literal["ok", "down"]
    rpc_url: str


class ToolSummary(BaseModel):
    id: str
    tool_type: Optional[str] = None
    name: str
    description: str = ""
    required_fields: List[str]
    alternatives: List[List[str]]
    mutating: bool


class ToolsResponse(BaseModel):
    tools: List[ToolSummary]
    actions: List[ToolSummary]


registry = ActionRegistry()

app = FastAPI(title="Somnia Agent API")

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_services() -> ActionServices:
    services = getattr(app.state, "services", None)
    if services is None:
        raise RuntimeError("Action services are not initialised; the API has not started.")
    return services


@app.on_event("startup")
async def _startup() -> None:
    # Tests install their own services before start-up.
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(load_runtime_config())
    services = get_services()
    configure_logging(services.config.log_level, services.config.log_json)
    logger.info("api_started", network=services.config.network_name, rpc_url=services.config.rpc_url)


@app.on_event("shutdown")
async def _shutdown() -> None:
    services = getattr(app.state, "services", None)
    if services is not None:
        services.close()
        app.state.services = None


@app.exception_handler(ActionError)
async def _action_error_handler(request: Request, exc: ActionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=get_services().assembler.failure(exc))


@app.exception_handler(Exception)
async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content=get_services().assembler.unexpected_failure(exc))


def _respond(result: ActionResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.body)


def _run(action_id: str, payload: ActionBody) -> JSONResponse:
    return _respond(registry.invoke(action_id, payload or {}, get_services()))


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    services = get_services()
    return HealthResponse(
        network=services.config.network_name,
        rpc="ok" if services.ledger.is_reachable() else "down",
        rpc_url=services.config.rpc_url,
    )


@app.post("/transfer")
def transfer(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("transfer", payload)


@app.post("/deploy-token")
def deploy_token(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("deploy_token", payload)


@app.post("/deploy-nft-collection")
def deploy_nft_collection(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("deploy_nft_collection", payload)


@app.post("/create-nft-collection")
def create_nft_collection(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("create_nft_collection", payload)


@app.post("/create-and-mint-nft")
def create_and_mint_nft(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("create_and_mint_nft", payload)


@app.post("/create-dao")
def create_dao(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("create_dao", payload)


@app.post("/swap")
def swap(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("swap", payload)


@app.post("/swap-ping-pong")
def swap_ping_pong(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("swap_ping_pong", payload)


@app.post("/airdrop")
def airdrop(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("airdrop", payload)


@app.post("/deposit-yield")
def deposit_yield(payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run("deposit_yield", payload)


@app.get("/balance/{address}")
def native_balance(address: str) -> JSONResponse:
    return _run("get_balance", {"address": address})


@app.get("/balance/{address}/{token}")
def token_balance(address: str, token: str) -> JSONResponse:
    return _run("get_balance", {"address": address, "tokenAddress": token})


@app.get("/wallet-analytics/{address}")
def wallet_analytics(address: str, tokens: Optional[str] = None) -> JSONResponse:
    return _run("wallet_analytics", {"address": address, "tokenAddresses": tokens})


@app.get("/price")
def fetch_price(ids: str, vs_currency: str = "usd") -> JSONResponse:
    return _run("fetch_price", {"assetIds": ids, "vsCurrency": vs_currency})


@app.get("/tools", response_model=ToolsResponse)
def tools() -> ToolsResponse:
    return ToolsResponse(
        tools=[ToolSummary(**item) for item in registry.list_tools()],
        actions=[ToolSummary(**item) for item in registry.list_actions()],
    )


@app.post("/tools/{tool_type}/run")
def run_tool(tool_type: str, payload: ActionBody = Body(default=None)) -> JSONResponse:
    return _run(tool_type, payload)


@app.post("/workflow/compile", response_model=WorkflowCompileResponse)
def workflow_compile(request: WorkflowCompileRequest) -> WorkflowCompileResponse:
    return WorkflowCompileResponse(**compile_workflow_payload(request.to_graph()))


@app.post("/workflow/expand", response_model=WorkflowExpandResponse)
def workflow_expand(request: WorkflowExpandRequest) -> WorkflowExpandResponse:
    return WorkflowExpandResponse(**expand_chain_payload(request.tool_chain))


@app.post("/workflow/run", response_model=WorkflowRunResponse)
def workflow_run(request: WorkflowRunRequest) -> WorkflowRunResponse:
    result = run_workflow_payload(request, registry=registry, services=get_services())
    return WorkflowRunResponse(**result)


def main() -> None:
    uvicorn.run(
        app,
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
