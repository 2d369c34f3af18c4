import itertools

import pytest
from azure.cognitiveservices.vision.computervision.models import AdultInfo

from image_pipeline.content_policy import is_inappropriate, is_inappropriate_content


class TestContentPolicy:
    """Unit tests for the adult/gory/racy content policy."""

    def test_clean_image_is_not_flagged(self):
        assert is_inappropriate(False, False, False) is False

    @pytest.mark.parametrize(
        "adult,gory,racy",
        [(True, False, False), (False, True, False), (False, False, True)],
    )
    def test_any_single_signal_flags(self, adult, gory, racy):
        assert is_inappropriate(adult, gory, racy) is True

    def test_truth_table(self):
        """Flagged exactly when at least one signal is set."""
        for adult, gory, racy in itertools.product([False, True], repeat=3):
            assert is_inappropriate(adult, gory, racy) == any((adult, gory, racy))

    def test_adult_info_racy(self):
        info = AdultInfo(is_adult_content=False, is_racy_content=True, is_gory_content=False)
        assert is_inappropriate_content(info) is True

    def test_adult_info_clean(self):
        info = AdultInfo(is_adult_content=False, is_racy_content=False, is_gory_content=False)
        assert is_inappropriate_content(info) is False

    def test_adult_info_missing_flags_count_as_clean(self):
        assert is_inappropriate_content(AdultInfo()) is False
