"""Tests for project name normalization."""

import pytest

from membank.errors import NormalizationFailure
from membank.storage.naming import MAX_NAME_LENGTH, normalize_project_name


class TestNormalizeProjectName:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("My Project", "my-project"),
            ("my project!", "my-project"),
            ("  Spaces  Around ", "spaces-around"),
            ("snake_case_name", "snake-case-name"),
            ("Müller Straße", "mueller-strasse"),
            ("Café Crème", "cafe-creme"),
            ("a -- b", "a-b"),
            ("v1..2", "v1.2"),
            ("-.leading and trailing.-", "leading-and-trailing"),
            ("already-normal", "already-normal"),
        ],
    )
    def test_examples(self, name: str, expected: str):
        assert normalize_project_name(name) == expected

    def test_idempotent(self):
        once = normalize_project_name("Ünïcode Project ##1")
        assert normalize_project_name(once) == once

    def test_truncated(self):
        result = normalize_project_name("a" * 500)
        assert len(result) == MAX_NAME_LENGTH

    def test_truncation_strips_dangling_separator(self):
        name = "a" * (MAX_NAME_LENGTH - 1) + " b"
        assert normalize_project_name(name) == "a" * (MAX_NAME_LENGTH - 1)

    @pytest.mark.parametrize("name", ["", "   ", "!!!", "日本語", "-.-"])
    def test_failure(self, name: str):
        with pytest.raises(NormalizationFailure):
            normalize_project_name(name)

    def test_failure_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_project_name("???")
