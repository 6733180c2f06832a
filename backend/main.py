"""
CCC Studio Backend

FastAPI application serving the editor's file/user API and the chat routes
that front the block explorer and price APIs.
"""

import hmac
import logging
import re
import secrets
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .aggregator import BlockAggregator, PriceAggregator, to_block_tag
from .config import (
    COINGECKO_BASE_URL,
    ETHERSCAN_BASE_URL,
    HOST,
    PORT,
    PRICE_VS_CURRENCY,
    SEED_DEMO_DATA,
)
from .errors import NotFoundError, UpstreamError, ValidationError
from .models import (
    BlockchainChatRequest,
    BlockSnapshot,
    ErrorResponse,
    FileCreate,
    FileRecord,
    FileUpdate,
    HighlightResponse,
    PriceQuote,
    RecentFile,
    RecentFileRequest,
    UserCredentials,
    UserResponse,
    WhoAmIResponse,
)
from .storage import MemStorage, Storage, seed_demo_data
from .syntax import highlight
from .upstream import CoinGeckoClient, EtherscanClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
# httpx logs every request URL, API keys included
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

ANONYMOUS_PRINCIPAL = "2vxsx-fae"
PRINCIPAL_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
NAMED_BLOCK_TAGS = ("latest", "earliest", "pending")

router = APIRouter()


# ============================================================================
# Dependencies
# ============================================================================

def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_block_aggregator(request: Request) -> BlockAggregator:
    return request.app.state.blocks


def get_price_aggregator(request: Request) -> PriceAggregator:
    return request.app.state.prices


def parse_id(value: Optional[str], label: str) -> int:
    """Parse an id from a path or query string, or fail with 400."""
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID")


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "CCC Studio",
        "upstreams": {
            "etherscan": ETHERSCAN_BASE_URL,
            "coingecko": COINGECKO_BASE_URL,
        },
        "vsCurrency": PRICE_VS_CURRENCY,
    }


# ============================================================================
# Identity Endpoints
# ============================================================================

def mock_principal(identity: str) -> str:
    """Stand-in for the identity provider: a random principal per call."""
    if not identity or identity == "anonymous":
        return ANONYMOUS_PRINCIPAL
    segments = [
        "".join(secrets.choice(PRINCIPAL_ALPHABET) for _ in range(size))
        for size in (5, 5, 5, 5, 3)
    ]
    return "-".join(segments)


@router.get("/api/whoami", response_model=WhoAmIResponse)
async def whoami(authorization: Optional[str] = Header(None)):
    """
    Return the principal behind the caller's bearer token.
    """
    identity = "anonymous"
    if authorization and authorization.startswith("Bearer "):
        identity = authorization[len("Bearer "):]
    return WhoAmIResponse(principal=mock_principal(identity))


@router.post("/api/auth/login", response_model=UserResponse)
async def login(credentials: UserCredentials, storage: Storage = Depends(get_storage)):
    """
    Check a username/password pair.
    """
    user = storage.get_user_by_username(credentials.username)
    if not user or not hmac.compare_digest(user.password, credentials.password):
        logger.warning(f"Failed login for {credentials.username}")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return UserResponse(id=user.id, username=user.username)


@router.post("/api/auth/register", response_model=UserResponse, status_code=201)
async def register(credentials: UserCredentials, storage: Storage = Depends(get_storage)):
    """
    Create a user.
    """
    if storage.get_user_by_username(credentials.username):
        raise HTTPException(status_code=409, detail="Username already exists")
    user = storage.create_user(credentials)
    return UserResponse(id=user.id, username=user.username)


# ============================================================================
# File Explorer Endpoints
# ============================================================================

@router.get("/api/files", response_model=List[FileRecord])
async def list_files(
    user_id: Optional[str] = Query(None, alias="userId"),
    storage: Storage = Depends(get_storage),
):
    """
    List every file and directory a user owns.
    """
    return storage.get_files_by_user(parse_id(user_id, "user"))


@router.get("/api/files/{file_id}", response_model=FileRecord)
async def get_file(file_id: str, storage: Storage = Depends(get_storage)):
    file = storage.get_file(parse_id(file_id, "file"))
    if not file:
        raise HTTPException(status_code=404, detail="File not found")
    return file


@router.post("/api/files", response_model=FileRecord, status_code=201)
async def create_file(file: FileCreate, storage: Storage = Depends(get_storage)):
    record = storage.create_file(file)
    return record


@router.put("/api/files/{file_id}", response_model=FileRecord)
async def update_file(file_id: str, update: FileUpdate, storage: Storage = Depends(get_storage)):
    """
    Apply a partial update to a file.
    """
    try:
        updated = storage.update_file(parse_id(file_id, "file"), update)
        logger.info(f"Updated file {updated.path}")
        return updated
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/api/files/{file_id}", status_code=204)
async def delete_file(file_id: str, storage: Storage = Depends(get_storage)):
    fid = parse_id(file_id, "file")
    if not storage.get_file(fid):
        raise HTTPException(status_code=404, detail="File not found")
    storage.delete_file(fid)
    logger.info(f"Deleted file {fid}")
    return Response(status_code=204)


@router.get("/api/files/{file_id}/highlight", response_model=HighlightResponse)
async def highlight_file(file_id: str, storage: Storage = Depends(get_storage)):
    """
    Paint a file's contents for the viewer.
    """
    file = storage.get_file(parse_id(file_id, "file"))
    if not file:
        raise HTTPException(status_code=404, detail="File not found")
    if file.type == "directory":
        raise HTTPException(status_code=400, detail=f"Path is not a file: {file.path}")

    lines = highlight(file.content or "")
    return HighlightResponse(file_id=file.id, path=file.path, line_count=len(lines), lines=lines)


@router.get("/api/recent-files", response_model=List[RecentFile])
async def list_recent_files(
    user_id: Optional[str] = Query(None, alias="userId"),
    storage: Storage = Depends(get_storage),
):
    """
    List a user's recently opened files, newest first.
    """
    return storage.get_recent_files_by_user(parse_id(user_id, "user"))


@router.post("/api/recent-files", response_model=RecentFile, status_code=201)
async def add_recent_file(
    request: Optional[RecentFileRequest] = Body(None),
    storage: Storage = Depends(get_storage),
):
    if not request or not request.file_id or not request.user_id:
        raise HTTPException(status_code=400, detail="File ID and User ID are required")
    return storage.add_recent_file(file_id=request.file_id, user_id=request.user_id)


# ============================================================================
# Chat Endpoints
# ============================================================================

@router.post("/api/chat/blockchain", response_model=BlockSnapshot)
async def chat_blockchain(
    request: Optional[BlockchainChatRequest] = Body(None),
    blocks: BlockAggregator = Depends(get_block_aggregator),
):
    """
    Resolve a 'block <±N>' command and return the block.
    """
    if not request or not request.command:
        raise HTTPException(status_code=400, detail="Command is required")

    try:
        snapshot = await blocks.lookup(request.command)
        logger.info(f"Block command '{request.command}' -> {snapshot.block_number}")
        return snapshot

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamError as e:
        logger.error(f"Block lookup failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error in block lookup: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/api/chat/price", response_model=PriceQuote)
async def chat_price(
    currency: Optional[str] = Query(None, description="Currency symbol or id"),
    prices: PriceAggregator = Depends(get_price_aggregator),
):
    """
    Quote the current price of one currency.
    """
    if not currency or not currency.strip():
        raise HTTPException(status_code=400, detail="Currency is required")

    try:
        quote = await prices.quote(currency)
        logger.info(f"Price {quote.currency} = {quote.price} {PRICE_VS_CURRENCY.upper()}")
        return quote

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        logger.warning(str(e))
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamError as e:
        logger.error(f"Error fetching price data: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error fetching price data: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/api/blockchain/block/{tag}")
async def get_block(tag: str, blocks: BlockAggregator = Depends(get_block_aggregator)):
    """
    Raw block passthrough. Accepts a named tag, a 0x number or a decimal number.
    """
    tag = tag.strip().lower()
    if tag.isdigit():
        tag = to_block_tag(int(tag))
    elif tag not in NAMED_BLOCK_TAGS and not re.fullmatch(r"0x[0-9a-f]+", tag):
        raise HTTPException(status_code=400, detail=f"Invalid block tag: {tag}")

    try:
        result = await blocks.explorer.block_by_tag(tag)
    except UpstreamError as e:
        logger.error(f"Block lookup failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if not result.found:
        raise HTTPException(status_code=404, detail=f"Block {tag} not found")
    return result.block


# ============================================================================
# Error Handlers
# ============================================================================

async def http_exception_handler(request, exc):
    """Custom handler for HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail)).model_dump(by_alias=True),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request, exc):
    """Malformed bodies and parameters are 400s, not 422s."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            message="Invalid request",
            detail=str(exc.errors()),
        ).model_dump(by_alias=True),
    )


async def general_exception_handler(request, exc):
    """Catch-all handler for unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            message="Internal server error",
            detail=str(exc),
        ).model_dump(by_alias=True),
    )


# ============================================================================
# Application Factory
# ============================================================================

def create_app(
    storage: Optional[Storage] = None,
    explorer: Optional[EtherscanClient] = None,
    prices: Optional[CoinGeckoClient] = None,
    seed_demo: bool = SEED_DEMO_DATA,
) -> FastAPI:
    """
    Build the application with its collaborators.

    Args:
        storage: Backing store; a fresh MemStorage when omitted
        explorer: Block explorer client; built from config when omitted
        prices: Price client; built from config when omitted
        seed_demo: Seed a freshly built MemStorage with the demo user and files
    """
    if storage is None:
        storage = MemStorage()
        if seed_demo:
            seed_demo_data(storage)
    explorer = explorer or EtherscanClient()
    prices = prices or CoinGeckoClient()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"CCC Studio starting on {HOST}:{PORT}")
        yield
        await explorer.close()
        await prices.close()
        logger.info("CCC Studio shut down")

    app = FastAPI(
        title="CCC Studio",
        description="Editor shell backend with block explorer and price chat",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.storage = storage
    app.state.blocks = BlockAggregator(explorer)
    app.state.prices = PriceAggregator(prices)

    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    return app


app = create_app()


# ============================================================================
# Development Server
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level="info",
    )
