# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""Content policy applied to Computer Vision adult-content signals."""

from azure.cognitiveservices.vision.computervision.models import AdultInfo


def is_inappropriate(adult: bool, gory: bool, racy: bool) -> bool:
    """Return True if any of the content signals is set."""
    return adult or gory or racy


def is_inappropriate_content(info: AdultInfo) -> bool:
    """
    Apply the content policy to the adult part of an image analysis.

    :param info: The ``adult`` section of an ``ImageAnalysis``.
    :return: True if the image must be rejected.
    """
    return is_inappropriate(
        bool(info.is_adult_content),
        bool(info.is_gory_content),
        bool(info.is_racy_content)
    )
