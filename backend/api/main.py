from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import AliasChoices, BaseModel, Field, StringConstraints
from typing import Annotated, Optional
import logging
import re

from api.config import Settings, settings
from assistant.collaborators import Classifier, LLMRanker, QueryRewriter
from assistant.errors import PipelineError
from assistant.llm_client import LLMClient, PerplexityClient
from assistant.models import TurnResult
from assistant.pipeline import ShoppingPipeline
from assistant.relevance import LocalRanker
from scrapers.config import BrowserSettings
from scrapers.manager import ScraperManager, SCRAPER_REGISTRY
from scrapers.observer import ArtifactObserver


# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


def configure_logging(config: Settings):
    """Console with colors, log file without; scraper loggers log once."""
    config.log_dir.mkdir(exist_ok=True)
    level = getattr(logging, config.log_level.upper())

    file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
    file_handler.setFormatter(ColorStripFormatter(config.log_format))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(config.log_format))

    logging.basicConfig(
        level=level,
        handlers=[file_handler, console_handler],
        force=True  # Override any existing configuration
    )

    # Scraper loggers get their own handlers and do not propagate to root
    scraper_logger = logging.getLogger('scraper')
    scraper_logger.propagate = False
    # Only add handlers if not already present (prevents duplicates on module reload)
    if not scraper_logger.handlers:
        scraper_file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
        scraper_file_handler.setFormatter(ColorStripFormatter(config.log_format))
        scraper_logger.addHandler(scraper_file_handler)

        scraper_console_handler = logging.StreamHandler()
        scraper_console_handler.setFormatter(logging.Formatter(config.log_format))
        scraper_logger.addHandler(scraper_console_handler)
    scraper_logger.setLevel(level)


configure_logging(settings)
logger = logging.getLogger(__name__)


def build_browser_settings(config: Settings = settings) -> BrowserSettings:
    return BrowserSettings.from_settings(config)


def build_scraper_manager(config: Settings = settings) -> ScraperManager:
    """A fresh manager; nothing is shared between turns."""
    observer = ArtifactObserver(config.artifacts_dir) if config.debug_artifacts else None
    return ScraperManager(
        build_browser_settings(config),
        observer=observer,
        site_keys=config.enabled_sources,
        stage_timeout=config.turn_scrape_timeout,
    )


def build_pipeline(config: Settings = settings) -> ShoppingPipeline:
    """Wire the collaborators and scrapers from settings."""
    llm = LLMClient(
        config.openai_api_key,
        model=config.openai_model,
        temperature=config.openai_temperature,
        timeout=config.openai_timeout,
    )
    perplexity = PerplexityClient(
        config.perplexity_api_key,
        model=config.perplexity_model,
        url=config.perplexity_url,
        timeout=config.perplexity_timeout,
    )
    if config.ranker_backend == "local":
        ranker = LocalRanker(config.max_ranked_results)
    else:
        ranker = LLMRanker(llm)

    return ShoppingPipeline(
        rewriter=QueryRewriter(llm),
        classifier=Classifier(perplexity),
        ranker=ranker,
        scraper_factory=lambda: build_scraper_manager(config),
        mode=config.pipeline_mode,
        max_results=config.max_ranked_results,
        per_source=config.simple_results_per_source,
        collaborator_timeout=config.collaborator_timeout,
    )


_pipeline: Optional[ShoppingPipeline] = None


def get_pipeline() -> ShoppingPipeline:
    """Dependency: the process-wide pipeline (holds no per-turn state)."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline


def get_scraper_manager() -> ScraperManager:
    """Dependency: a fresh ScraperManager per request."""
    return build_scraper_manager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("Fashion AI Search Backend Starting Up")
    logger.info("=" * 60)
    logger.info(f"Log file: {settings.log_file}")
    logger.info(f"Pipeline mode: {settings.pipeline_mode}, ranker: {settings.ranker_backend}")
    logger.info(f"Sources: {settings.enabled_sources}")
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; searches will fail at the rewrite stage")
    if settings.pipeline_mode == "ranked" and not settings.perplexity_api_key:
        logger.warning("PERPLEXITY_API_KEY is not set; searches will fail at the classify stage")
    logger.info("Backend ready to accept requests")

    yield  # Application runs here

    # Shutdown
    logger.info("=" * 60)
    logger.info("Fashion AI Search Backend Shutting Down")
    logger.info("=" * 60)


app = FastAPI(
    title="Fashion AI Search API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - allow all origins for development
# Note: allow_credentials must be False when allow_origins is ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    """Return empty response for favicon requests"""
    return Response(status_code=204)


# Pydantic models for API requests
class SearchRequest(BaseModel):
    query: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class ScrapeRequest(BaseModel):
    search_term: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)] = Field(
        validation_alias=AliasChoices("searchTerm", "search_term")
    )


# API Endpoints

@app.get("/")
async def root():
    return {"message": "Fashion AI Search API", "version": "1.0.0"}


@app.get("/api/scrapers")
async def list_scrapers():
    """List all available scrapers and their implementation status"""
    manager = ScraperManager()
    return {
        "scrapers": manager.list_scrapers(),
        "implemented": manager.get_implemented_scrapers()
    }


@app.post("/api/search", response_model=TurnResult)
async def search(request: SearchRequest, pipeline: ShoppingPipeline = Depends(get_pipeline)):
    """Run one conversational turn: rewrite, classify, scrape, rank."""
    try:
        return await pipeline.run_turn(request.query)
    except PipelineError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.user_message)


@app.post("/api/scrape/{source_name}")
async def scrape_source(
    source_name: str,
    request: ScrapeRequest,
    manager: ScraperManager = Depends(get_scraper_manager),
):
    """Search a single source and return its products with diagnostics"""
    source_key = source_name.lower()
    if source_key not in SCRAPER_REGISTRY:
        raise HTTPException(
            status_code=404,
            detail=f"Scraper for {source_name} not found. Available: {list(SCRAPER_REGISTRY.keys())}"
        )

    products = await manager.search_site(source_key, request.search_term)
    result = manager.results.get(source_key)
    return {
        "source": source_key,
        "search_term": request.search_term,
        "products": [p.to_dict() for p in products],
        "result": result.to_dict() if result else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        access_log=True,
        log_config=None,  # Keep the handlers configured above
        timeout_keep_alive=5,
        timeout_graceful_shutdown=5.0,
    )
