"""FastAPI dependency providers for shared services."""

from samoverlay_backend.services import ModelLoader, SAM2Service, SessionStore

_sam2_service: SAM2Service | None = None
_model_loader: ModelLoader | None = None
_session_store: SessionStore | None = None


def get_sam2_service() -> SAM2Service:
    """Get or create the SAM2 service singleton."""
    global _sam2_service
    if _sam2_service is None:
        _sam2_service = SAM2Service()
    return _sam2_service


def get_model_loader() -> ModelLoader:
    """Get or create the loader that tracks SAM2 readiness."""
    global _model_loader
    if _model_loader is None:
        _model_loader = ModelLoader(get_sam2_service())
    return _model_loader


def get_session_store() -> SessionStore:
    """Get or create the in-memory session store."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore()
    return _session_store
