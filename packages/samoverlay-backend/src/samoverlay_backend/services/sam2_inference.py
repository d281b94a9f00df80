"""SAM2 inference service split into image encoder, prompt encoder and mask decoder."""

from __future__ import annotations

import logging

import numpy as np
import torch
from numpy.typing import NDArray
from PIL import Image

from samoverlay_backend.config import settings
from samoverlay_backend.errors import ModelNotLoadedError
from samoverlay_backend.models import CandidateMasks, ImageEncoding, PromptEncoding

logger = logging.getLogger(__name__)


def resolve_device(device: str) -> torch.device:
    """Map the configured device name to a torch device, 'auto' picks CUDA when present."""
    if device == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    return torch.device(device)


class SAM2Service:
    """Service running the three SAM2 stages separately.

    Image features are computed once per image and kept by the caller in an
    ImageEncoding, so every prompt change only pays for the prompt encoder and
    the mask decoder.
    """

    def __init__(
        self,
        checkpoint: str | None = None,
        model_config: str | None = None,
        device: str | None = None,
    ) -> None:
        """Initialize the SAM2 service without loading the model."""
        self._checkpoint = checkpoint or settings.sam2_checkpoint
        self._model_config = model_config or settings.sam2_model_config
        self._device = resolve_device(device or settings.device)
        self._model = None
        self._transforms = None
        self._bb_feat_sizes: list[list[int]] = []

    def load_model(self) -> None:
        """Build the SAM2 model from its config and checkpoint.

        Blocking; callers run it off the event loop.
        """
        if self._model is not None:
            logger.info("SAM2 model already loaded")
            return

        logger.info(f"Loading SAM2 model {self._model_config} on {self._device}...")

        if self._device.type == "cuda":
            # Enable TensorFloat32 for Ampere GPUs
            torch.backends.cuda.matmul.allow_tf32 = True
            torch.backends.cudnn.allow_tf32 = True

        from sam2.build_sam import build_sam2
        from sam2.utils.transforms import SAM2Transforms

        model = build_sam2(self._model_config, self._checkpoint, device=str(self._device))
        self._transforms = SAM2Transforms(resolution=model.image_size, mask_threshold=0.0)

        # Backbone feature map sizes, e.g. [[256, 256], [128, 128], [64, 64]] for 1024 input
        hires_size = model.image_size // 4
        self._bb_feat_sizes = [[hires_size // (2**k)] * 2 for k in range(3)]
        self._model = model

        logger.info("SAM2 model loaded successfully")

    def unload_model(self) -> None:
        """Release SAM2 model from memory to free GPU resources."""
        if self._model is None:
            logger.info("SAM2 model not loaded, nothing to unload")
            return

        logger.info("Unloading SAM2 model...")

        del self._model
        self._model = None
        self._transforms = None

        if torch.cuda.is_available():
            torch.cuda.empty_cache()

        logger.info("SAM2 model unloaded")

    @property
    def is_loaded(self) -> bool:
        """Check if the model is currently loaded."""
        return self._model is not None

    def _require_model(self):
        if self._model is None:
            raise ModelNotLoadedError("SAM2 model not loaded. Call load_model() first.")
        return self._model

    def encode_image(self, image: Image.Image) -> ImageEncoding:
        """Run the image encoder.

        Args:
            image: RGB PIL image at original resolution.

        Returns:
            ImageEncoding with the lowest resolution embedding and the
            high resolution features used by the decoder.

        Raises:
            ModelNotLoadedError: If model is not loaded.
        """
        model = self._require_model()
        width, height = image.size

        input_image = self._transforms(image.convert("RGB"))[None, ...].to(self._device)

        with torch.inference_mode():
            backbone_out = model.forward_image(input_image)
            _, vision_feats, _, _ = model._prepare_backbone_features(backbone_out)
            if model.directly_add_no_mem_embed:
                vision_feats[-1] = vision_feats[-1] + model.no_mem_embed

            feats = [
                feat.permute(1, 2, 0).view(1, -1, *feat_size)
                for feat, feat_size in zip(vision_feats[::-1], self._bb_feat_sizes[::-1], strict=True)
            ][::-1]

        logger.info(f"Encoded image of size {width}x{height}")
        return ImageEncoding(image_embed=feats[-1], high_res_feats=feats[:-1], original_size=(width, height))

    def encode_prompt(self, coords: NDArray[np.float32], labels: NDArray[np.int32]) -> PromptEncoding:
        """Run the prompt encoder.

        Args:
            coords: Model space point coordinates, shape (1, N, 2).
            labels: Category codes, shape (1, N).

        Raises:
            ModelNotLoadedError: If model is not loaded.
        """
        model = self._require_model()

        point_coords = torch.as_tensor(coords, dtype=torch.float, device=self._device)
        point_labels = torch.as_tensor(labels, dtype=torch.int, device=self._device)

        with torch.inference_mode():
            sparse_embeddings, dense_embeddings = model.sam_prompt_encoder(
                points=(point_coords, point_labels),
                boxes=None,
                masks=None,
            )

        return PromptEncoding(
            sparse_embeddings=sparse_embeddings,
            dense_embeddings=dense_embeddings,
            num_points=int(labels.shape[1]),
        )

    def decode_mask(self, image_encoding: ImageEncoding, prompt_encoding: PromptEncoding) -> CandidateMasks:
        """Run the mask decoder in multimask mode.

        Returns:
            CandidateMasks with scores of shape (C,) and low resolution logits
            of shape (1, C, 256, 256).

        Raises:
            ModelNotLoadedError: If model is not loaded.
        """
        model = self._require_model()

        with torch.inference_mode():
            low_res_masks, iou_predictions, _, _ = model.sam_mask_decoder(
                image_embeddings=image_encoding.image_embed,
                image_pe=model.sam_prompt_encoder.get_dense_pe(),
                sparse_prompt_embeddings=prompt_encoding.sparse_embeddings,
                dense_prompt_embeddings=prompt_encoding.dense_embeddings,
                multimask_output=True,
                repeat_image=False,
                high_res_features=image_encoding.high_res_feats,
            )

        scores = iou_predictions[0].float().cpu().numpy().astype(np.float32)
        masks = low_res_masks.float().cpu().numpy().astype(np.float32)
        return CandidateMasks(scores=scores, masks=masks)
