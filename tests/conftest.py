"""Test fixtures for SAM2 overlay backend tests."""

import os
import threading
import time
from collections.abc import Generator

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Set test environment variables before importing app modules
os.environ["LOAD_MODEL_ON_STARTUP"] = "false"
os.environ["INFERENCE_RETRY_BACKOFF"] = "0"

from samoverlay_backend.dependencies import get_model_loader, get_sam2_service, get_session_store
from samoverlay_backend.main import app
from samoverlay_backend.models import CandidateMasks, ImageEncoding, PromptEncoding
from samoverlay_backend.services import ModelLoader, SegmentationSession, SessionStore


def make_candidate_masks(size: int = 8) -> np.ndarray:
    """Three low resolution logit channels; channel 1 covers the top-left quadrant."""
    masks = np.full((1, 3, size, size), -4.0, dtype=np.float32)
    half = size // 2
    masks[0, 1, :half, :half] = 4.0
    # Non-flat channels elsewhere, a single positive pixel bottom-right
    masks[0, 0, -1, -1] = 4.0
    masks[0, 2, -1, -1] = 4.0
    return masks


class FakeEngine:
    """In-memory inference engine recording every call it receives."""

    def __init__(self, scores: tuple[float, ...] = (0.1, 0.9, 0.3)) -> None:
        self.loaded = True
        self.scores = np.array(scores, dtype=np.float32)
        self.masks = make_candidate_masks()
        self.image_calls = 0
        self.prompt_calls: list[tuple[np.ndarray, np.ndarray]] = []
        self.decode_calls = 0
        self.prompt_failures = 0
        self.image_failures = 0
        self.decode_started = threading.Event()
        self.decode_release: threading.Event | None = None
        self.encode_delay = 0.0

    @property
    def is_loaded(self) -> bool:
        return self.loaded

    def encode_image(self, image: Image.Image) -> ImageEncoding:
        self.image_calls += 1
        if self.encode_delay:
            time.sleep(self.encode_delay)
        if self.image_failures:
            self.image_failures -= 1
            raise RuntimeError("image encoder crashed")
        return ImageEncoding(image_embed="embed", high_res_feats=[], original_size=image.size)

    def encode_prompt(self, coords: np.ndarray, labels: np.ndarray) -> PromptEncoding:
        self.prompt_calls.append((coords.copy(), labels.copy()))
        if self.prompt_failures:
            self.prompt_failures -= 1
            raise RuntimeError("prompt encoder crashed")
        return PromptEncoding(sparse_embeddings="sparse", dense_embeddings="dense", num_points=labels.shape[1])

    def decode_mask(self, image_encoding: ImageEncoding, prompt_encoding: PromptEncoding) -> CandidateMasks:
        self.decode_calls += 1
        self.decode_started.set()
        if self.decode_release is not None:
            self.decode_release.wait(timeout=5)
        return CandidateMasks(scores=self.scores.copy(), masks=self.masks.copy())


@pytest.fixture
def fake_engine() -> FakeEngine:
    """Create a loaded fake inference engine."""
    return FakeEngine()


@pytest.fixture
def ready_loader(fake_engine: FakeEngine) -> ModelLoader:
    """Create a model loader that reports the fake engine as ready."""
    loader = ModelLoader(fake_engine)
    loader.mark_ready()
    return loader


@pytest.fixture
def session(fake_engine: FakeEngine, ready_loader: ModelLoader) -> SegmentationSession:
    """Create a session over a 1000x1000 image displayed at 500x500."""
    session = SegmentationSession(fake_engine, ready_loader, retries=2, retry_backoff=0)
    session.set_image(Image.new("RGB", (1000, 1000), color="gray"), (500, 500))
    return session


@pytest.fixture
def session_store() -> SessionStore:
    """Create an empty session store."""
    return SessionStore()


@pytest.fixture
def client(
    fake_engine: FakeEngine, ready_loader: ModelLoader, session_store: SessionStore
) -> Generator[TestClient, None, None]:
    """Create a test client with mocked dependencies."""
    app.dependency_overrides[get_sam2_service] = lambda: fake_engine
    app.dependency_overrides[get_model_loader] = lambda: ready_loader
    app.dependency_overrides[get_session_store] = lambda: session_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
