"""Backend services."""

from samoverlay_backend.services.colors import CANDIDATE_COLORS, furthest_color
from samoverlay_backend.services.coordinates import from_model_space, from_ui_space, to_model_space, to_ui_space
from samoverlay_backend.services.image_io import composite_overlays, encode_png, load_image, save_png
from samoverlay_backend.services.inference import InferenceEngine, decode_mask, encode_image
from samoverlay_backend.services.mask_postprocess import (
    PostprocessedMask,
    postprocess_mask,
    render_overlay,
    render_segmentation,
)
from samoverlay_backend.services.mask_selection import best_mask_index, select_best_mask
from samoverlay_backend.services.model_loader import ModelLoader
from samoverlay_backend.services.prompts import PromptInputs, build_prompt_inputs, encode_prompt, point_sequence
from samoverlay_backend.services.sam2_inference import SAM2Service
from samoverlay_backend.services.session import SegmentationSession, SessionStore

__all__ = [
    "CANDIDATE_COLORS",
    "InferenceEngine",
    "ModelLoader",
    "PostprocessedMask",
    "PromptInputs",
    "SAM2Service",
    "SegmentationSession",
    "SessionStore",
    "best_mask_index",
    "build_prompt_inputs",
    "composite_overlays",
    "decode_mask",
    "encode_image",
    "encode_png",
    "encode_prompt",
    "from_model_space",
    "from_ui_space",
    "furthest_color",
    "load_image",
    "postprocess_mask",
    "render_overlay",
    "render_segmentation",
    "save_png",
    "select_best_mask",
    "to_model_space",
    "to_ui_space",
]
