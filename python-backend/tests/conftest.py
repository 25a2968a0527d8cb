"""
Shared fixtures
"""

import pytest

from searchable_pdf.config import SearchableConfig

from helpers import EngineRecorder, build_scanned_pdf, words_result


@pytest.fixture
def config():
    return SearchableConfig()


@pytest.fixture
def scanned_pdf():
    return build_scanned_pdf(page_count=3, title="Quarterly Report", author="Finance Team")


@pytest.fixture
def five_words_script():
    """Every page yields five words"""
    def script(index, image):
        return words_result([f"word{index}_{n}" for n in range(5)], image)
    return script


@pytest.fixture
def recorder(five_words_script):
    return EngineRecorder(five_words_script)
