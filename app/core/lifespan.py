from contextlib import asynccontextmanager
import logging

from app.ai.client import GenerationClient
from app.ai.config import load_ai_config
from app.ai.factory import get_generation_backend
from app.core.application_store import ApplicationStore
from app.services.analysis_service import AnalysisService
from app.services.optimization_service import OptimizationService

logger = logging.getLogger(__name__)


def attach_services(app, client: GenerationClient, store: ApplicationStore | None = None) -> None:
    analysis = AnalysisService(client)
    app.state.application_store = store if store is not None else ApplicationStore()
    app.state.analysis_service = analysis
    app.state.optimization_service = OptimizationService(client, analysis)


@asynccontextmanager
async def lifespan(app):
    # Tests pre-populate app.state with stub-backed services.
    if getattr(app.state, "application_store", None) is None:
        cfg = load_ai_config()
        backend = get_generation_backend(cfg)
        attach_services(app, GenerationClient.from_config(backend, cfg))
        logger.info("services_ready provider=%s model=%s", cfg.provider, cfg.model)

    yield

    store = getattr(app.state, "application_store", None)
    if store is not None:
        logger.info("application_store_shutdown records=%s", len(store))
        store.clear()
    app.state.application_store = None
    app.state.analysis_service = None
    app.state.optimization_service = None
