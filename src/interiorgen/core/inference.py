"""Replicate inference client for the Interior Design Generator.

This module provides :class:`InferenceClient`, a thin wrapper around a
:class:`replicate.Client` that builds the model input object, runs the
prediction and validates the shape of the result.

Modes
-----
- **Prompt-only** - the input carries the prompt and fixed hyperparameters.
  Image, mask and ControlNet keys are *absent* from the input object, which
  makes the model generate unconditioned.
- **Edit** - the input additionally carries the uploaded image URL, the
  optional mask URL, and the ControlNet conditioning scale and type.

Output Contract
---------------
The model must return a non-empty list whose first element is a URL
string.  Anything else raises :class:`InferenceOutputError`.  Predictions
are run with ``use_file_output=False`` so the provider returns plain URLs.

Usage
-----
::

    import replicate

    client = InferenceClient(replicate.Client(api_token=token), model=ref)
    url = client.run("A sunny kitchen INTR, ...")
"""

from __future__ import annotations

import logging
from typing import Any

import replicate

from interiorgen.core.errors import InferenceOutputError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Fixed hyperparameters shared by both modes.
# ---------------------------------------------------------------------------
BASE_PARAMETERS: dict[str, Any] = {
    "num_inference_steps": 30,
    "guidance_scale": 7.5,
    "prompt_strength": 0.8,
    "scheduler": "K_EULER",
    "num_outputs": 1,
    "output_format": "jpg",
}

# Only sent in prompt-only mode; edit mode follows the input image's shape.
PROMPT_ONLY_PARAMETERS: dict[str, Any] = {
    "aspect_ratio": "16:9",
}

# Only sent in edit mode.
EDIT_PARAMETERS: dict[str, Any] = {
    "controlnet_conditioning_scale": 0.75,
    "controlnet_type": "depth",
}


def build_model_input(
    prompt: str,
    *,
    negative_prompt: str | None = None,
    image_url: str | None = None,
    mask_url: str | None = None,
) -> dict[str, Any]:
    """Build the input object for a prediction.

    Args:
        prompt: The composed prompt.
        negative_prompt: Text describing what to avoid, or ``None``.
        image_url: Public URL of the source image.  Its presence selects
            edit mode.
        mask_url: Public URL of the processed mask (edit mode only).

    Returns:
        The ``input`` dictionary for :meth:`replicate.Client.run`.

    Raises:
        ValueError: If *mask_url* is given without *image_url*.
    """
    if mask_url and not image_url:
        raise ValueError("a mask requires a source image")

    model_input: dict[str, Any] = {"prompt": prompt, **BASE_PARAMETERS}

    if negative_prompt:
        model_input["negative_prompt"] = negative_prompt

    if image_url:
        model_input["image"] = image_url
        if mask_url:
            model_input["mask"] = mask_url
        model_input.update(EDIT_PARAMETERS)
    else:
        model_input.update(PROMPT_ONLY_PARAMETERS)

    return model_input


def first_output_url(output: Any) -> str:
    """Return the first URL from a prediction output.

    Raises:
        InferenceOutputError: If *output* is not a non-empty list or tuple
            whose first element is a string.
    """
    if not isinstance(output, (list, tuple)):
        raise InferenceOutputError(
            "Invalid output format from Replicate API: "
            f"expected a list, got {type(output).__name__}"
        )
    if not output:
        raise InferenceOutputError("Invalid output format from Replicate API: empty output")

    first = output[0]
    if not isinstance(first, str) or not first:
        raise InferenceOutputError(
            "Invalid output format from Replicate API: "
            f"first element is {type(first).__name__}, not a URL string"
        )
    return first


class InferenceClient:
    """Runs the interior design model on Replicate.

    Attributes:
        _client (replicate.Client): Authenticated Replicate client.
        _model (str): ``owner/name:version`` model reference.
    """

    def __init__(self, client: replicate.Client, model: str) -> None:
        self._client = client
        self._model = model

    @classmethod
    def from_token(cls, api_token: str | None, model: str) -> InferenceClient:
        """Create a client authenticated with *api_token*."""
        return cls(replicate.Client(api_token=api_token), model)

    @property
    def model(self) -> str:
        """The model reference predictions are run against."""
        return self._model

    def run(
        self,
        prompt: str,
        *,
        negative_prompt: str | None = None,
        image_url: str | None = None,
        mask_url: str | None = None,
    ) -> str:
        """Run one prediction and return the URL of the first output.

        Args:
            prompt: The composed prompt.
            negative_prompt: Optional negative prompt.
            image_url: Source image URL (edit mode).
            mask_url: Mask URL (edit mode).

        Returns:
            URL of the generated image.

        Raises:
            InferenceOutputError: If the output has an unexpected shape.
            replicate.exceptions.ReplicateError: If the prediction fails.
        """
        model_input = build_model_input(
            prompt,
            negative_prompt=negative_prompt,
            image_url=image_url,
            mask_url=mask_url,
        )

        logger.info(
            "Running model '%s' in %s mode.",
            self._model,
            "edit" if image_url else "prompt-only",
        )

        output = self._client.run(self._model, input=model_input, use_file_output=False)
        logger.debug("Replicate API output: %r", output)

        return first_output_url(output)
